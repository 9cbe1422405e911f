# src/caseport/contracts/errors.py
"""Exceptions raised across the export/import pipeline.

Every failure mode of the pipeline has its own exception so callers (the
CLI, or an application embedding the library) can tell an aborted
collection from a malformed document without parsing messages.

Unresolved references are NOT exceptions: they are reported as
UnresolvedReference warnings on the ImportResult (see contracts.records).
"""

from typing import Any


class CaseportError(Exception):
    """Base class for all caseport errors."""


class RegistryValidationError(CaseportError):
    """Raised when a type registry declaration is inconsistent.

    Examples: a retrieval rule that depends on a type declared after it,
    a dependency cycle, or a reference to an undeclared entity type.
    """


class CollectionError(CaseportError):
    """Raised when a retrieval rule fails during graph collection.

    The whole export is aborted; there is no partial result.

    Attributes:
        entity_type: Name of the entity type whose rule failed
    """

    def __init__(self, entity_type: str, cause: BaseException) -> None:
        self.entity_type = entity_type
        super().__init__(f"Retrieval of '{entity_type}' records failed: {type(cause).__name__}: {cause}")


class RedactionError(CaseportError):
    """Raised when a sanitization transform cannot redact a value."""

    def __init__(self, entity_type: str, field: str, transform: str, cause: BaseException) -> None:
        self.entity_type = entity_type
        self.field = field
        self.transform = transform
        super().__init__(f"Transform '{transform}' failed on {entity_type}.{field}: {type(cause).__name__}: {cause}")


class MalformedDocumentError(CaseportError):
    """Raised when an export document cannot be deserialized.

    Raised before any record is written, so an import never starts from
    a partially understood document.
    """


class MissingDependencyError(CaseportError):
    """Raised when a required related record is absent at creation time.

    Fatal for the record being created; the caller's transaction is
    expected to roll back everything written so far.
    """

    def __init__(self, entity_type: str, field: str, value: Any, description: str) -> None:
        self.entity_type = entity_type
        self.field = field
        self.value = value
        self.description = description
        super().__init__(f"{description}: required reference {entity_type}.{field}={value!r} does not resolve to any imported or existing record")


class RecordValidationError(CaseportError):
    """Raised by checked creation when a record fails validation."""

    def __init__(self, entity_type: str, description: str, problems: list[str]) -> None:
        self.entity_type = entity_type
        self.problems = problems
        super().__init__(f"{description} failed validation: {'; '.join(problems)}")


class RootNotFoundError(CaseportError):
    """Raised when a root record cannot be located by its identifier."""


class SchemaCompatibilityError(CaseportError):
    """Raised when a database is missing tables the registry needs."""
