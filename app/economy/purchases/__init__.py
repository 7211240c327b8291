from app.economy.purchases.access import AccessService
from app.economy.purchases.service import PurchaseService

__all__ = ["AccessService", "PurchaseService"]
