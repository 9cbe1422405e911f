# src/caseport/contracts/__init__.py
"""Shared contracts for cross-boundary data types.

This package is a LEAF MODULE with no outbound dependencies to core or
transfer. Settings classes live in caseport.core.config.

Import patterns:
    from caseport.contracts import RecordSet, ImportResult, CreationMode
"""

from caseport.contracts.enums import CreationMode, ImportOutcome
from caseport.contracts.errors import (
    CaseportError,
    CollectionError,
    MalformedDocumentError,
    MissingDependencyError,
    RecordValidationError,
    RedactionError,
    RegistryValidationError,
    RootNotFoundError,
    SchemaCompatibilityError,
)
from caseport.contracts.records import (
    ExportDocument,
    ImportResult,
    Record,
    RecordDifference,
    RecordSet,
    UnresolvedReference,
)

__all__ = [
    "CaseportError",
    "CollectionError",
    "CreationMode",
    "ExportDocument",
    "ImportOutcome",
    "ImportResult",
    "MalformedDocumentError",
    "MissingDependencyError",
    "Record",
    "RecordDifference",
    "RecordSet",
    "RecordValidationError",
    "RedactionError",
    "RegistryValidationError",
    "RootNotFoundError",
    "SchemaCompatibilityError",
    "UnresolvedReference",
]
