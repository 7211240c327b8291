class CatalogError(Exception):
    pass


class CatalogQuestionSetNotFoundError(CatalogError):
    pass


class CatalogValidationError(CatalogError):
    pass
