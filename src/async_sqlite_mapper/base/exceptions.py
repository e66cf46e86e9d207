from typing import Optional


class MappingException(Exception):
    """Base class for errors raised while mapping entity types onto SQLite tables."""

    def __init__(self, message: str = "Entity mapping failed."):
        super().__init__(message)


class UnmappedColumnException(MappingException):
    """Exception raised when a column is pushed before it belongs to a column mapping."""

    def __init__(self, message: str = "Cannot push an unmapped SQL column to the database."):
        super().__init__(message)


class SchemaConflictException(MappingException):
    """
    Exception raised when the live table already holds a column with the same
    name as a declared column but with a different type.
    """

    def __init__(
        self,
        message: str = "The table already contains an incompatible column definition.",
        existing: Optional[str] = None,
        declared: Optional[str] = None,
    ):
        super().__init__(message)
        self.existing = existing
        self.declared = declared


class UnsupportedTypeException(MappingException, TypeError):
    """Exception raised when a column would have to be created from an unsupported type."""

    def __init__(self, message: str = "The type has no SQLite mapping."):
        super().__init__(message)


class InvalidNullComparisonException(MappingException, ValueError):
    """Exception raised when NULL is compared with anything but equals / not equals."""

    def __init__(self, message: str = "Operator is not valid for comparison with NULL."):
        super().__init__(message)
