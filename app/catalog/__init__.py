from app.catalog.service import CatalogService

__all__ = ["CatalogService"]
