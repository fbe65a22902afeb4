"""Exceptions for sqlmodel_autopreload."""


class RecordNotFoundError(Exception):
    """
    Raised when a database record is not found.

    Attributes:
        status_code: HTTP-compatible status code (404)
        detail: Human-readable error message
    """
    status_code: int = 404

    def __init__(self, detail: str = "Not found"):
        self.detail = detail
        super().__init__(detail)


class AutoPreloadError(Exception):
    """
    Base class for auto-preload configuration errors.

    Attributes:
        status_code: HTTP-compatible status code (500, a programming error)
        code: Stable machine-readable error code
        detail: Human-readable error message
    """
    status_code: int = 500
    code: str = "E_AUTO_PRELOAD"

    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(detail)


class InvalidRelationshipSpecificationError(AutoPreloadError):
    """
    A model declares ``__auto_preload__`` entries that are neither
    relationship names nor callables.

    Raised once, while the model class is being created.
    """
    code = "E_WRONG_RELATIONSHIP_TYPE"

    def __init__(self, model: str):
        self.model = model
        super().__init__(
            f'The model "{model}" has wrong relationships to be auto-preloaded. '
            f"Only string and callable types are allowed"
        )


class InvalidArgumentKindError(AutoPreloadError):
    """``without()`` / ``with_only()`` received something other than a list of relationship names."""
    code = "E_WRONG_ARGUMENT_TYPE"

    def __init__(self, method: str):
        self.method = method
        super().__init__(f"The method {method} accepts only a list of strings")


class RelationshipNotFoundError(AutoPreloadError):
    """A preload names an attribute that is not a relationship of the model."""
    code = "E_RELATIONSHIP_NOT_FOUND"

    def __init__(self, model: str, relation: str):
        self.model = model
        self.relation = relation
        super().__init__(f"{model} has no relationship named '{relation}'")
