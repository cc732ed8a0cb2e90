class CatalogError(Exception):
    pass


class PlanNotFoundError(CatalogError):
    pass


class CodeNotFoundError(CatalogError):
    pass


class CodeAlreadyExistsError(CatalogError):
    pass


class CodeInUseError(CatalogError):
    pass


class CatalogValidationError(CatalogError):
    def __init__(self, field: str, message: str) -> None:
        super().__init__(f"{field}: {message}")
        self.field = field
        self.message = message
