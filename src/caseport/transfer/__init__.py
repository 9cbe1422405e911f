# src/caseport/transfer/__init__.py
"""Export and import of appeal record graphs.

Exporting: GraphCollector -> Sanitizer -> serialize (SanitizedJsonExporter).
Importing: deserialize -> SanitizedJsonImporter.
"""

from caseport.transfer.associations import Association, AssociationWrapper, fieldnames
from caseport.transfer.collector import GraphCollector
from caseport.transfer.configuration import build_registry
from caseport.transfer.difference import document_differences
from caseport.transfer.exporter import SanitizedJsonExporter, find_appeal
from caseport.transfer.importer import SanitizedJsonImporter, import_document
from caseport.transfer.redaction import Sanitizer
from caseport.transfer.registry import EntityType, SanitizeField, TypeRegistry, ValidationExemption
from caseport.transfer.serialization import deserialize, serialize
from caseport.transfer.transforms import TRANSFORMS, TransformContext

__all__ = [
    "TRANSFORMS",
    "Association",
    "AssociationWrapper",
    "EntityType",
    "GraphCollector",
    "SanitizeField",
    "SanitizedJsonExporter",
    "SanitizedJsonImporter",
    "Sanitizer",
    "TransformContext",
    "TypeRegistry",
    "ValidationExemption",
    "build_registry",
    "deserialize",
    "document_differences",
    "fieldnames",
    "find_appeal",
    "import_document",
    "serialize",
]
