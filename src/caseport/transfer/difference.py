# src/caseport/transfer/difference.py
"""Structural comparison of two export documents.

Used to verify an import: export the roots from the source, import,
export the same roots from the target, and compare. Ids and the reference
fields each type declares always differ between the two (that is what
reassociation does), so they are left out, together with each type's
expected differences. Other ``_id`` columns (``css_id``,
``participant_id``, ``conference_id``) are ordinary values and are compared.

Field values are compared with DeepDiff; nested values (instruction
lists, JSON columns) are reported once, under their top-level field.
"""

from typing import Any

from deepdiff import DeepDiff

from caseport.contracts import ExportDocument, Record, RecordDifference
from caseport.transfer.registry import EntityType, TypeRegistry

MISSING = "<missing record>"


def reference_fields(entity_type: EntityType) -> frozenset[str]:
    """The primary key plus every declared reference field of the type."""
    return frozenset({"id", *(association.field for association in entity_type.associations)})


def comparable(record: Record, entity_type: EntityType | None = None) -> dict[str, Any]:
    """The fields of a record that must survive a round trip unchanged.

    Without an entity type only ``id`` is dropped.
    """
    if entity_type is None:
        ignored: frozenset[str] = frozenset({"id"})
    else:
        ignored = reference_fields(entity_type) | set(entity_type.expected_differences)
    return {k: v for k, v in record.items() if k not in ignored}


def changed_fields(left: dict[str, Any], right: dict[str, Any]) -> list[str]:
    """Top-level fields whose values differ (including fields on one side only)."""
    changed = []
    for name in sorted(left.keys() | right.keys()):
        if name not in left or name not in right or DeepDiff(left[name], right[name]):
            changed.append(name)
    return changed


def document_differences(left: ExportDocument, right: ExportDocument, registry: TypeRegistry) -> list[RecordDifference]:
    """Field-by-field differences between two documents, per type and position.

    A record present on only one side is reported once with field MISSING.
    """
    differences: list[RecordDifference] = []
    for entity_type in registry:
        name = entity_type.name
        left_records = left.records.get(name)
        right_records = right.records.get(name)
        for index in range(max(len(left_records), len(right_records))):
            if index >= len(left_records) or index >= len(right_records):
                differences.append(
                    RecordDifference(
                        name,
                        index,
                        MISSING,
                        left_records[index] if index < len(left_records) else None,
                        right_records[index] if index < len(right_records) else None,
                    )
                )
                continue
            a = comparable(left_records[index], entity_type)
            b = comparable(right_records[index], entity_type)
            for field_name in changed_fields(a, b):
                differences.append(RecordDifference(name, index, field_name, a.get(field_name), b.get(field_name)))
    return differences
