# src/caseport/contracts/records.py
"""Record containers and run results shared by exporter and importer.

A record is a plain ``dict`` of column name to value, keyed by the
entity type's name (which is also its table name). Every record carries
an integer ``id``.
"""

from collections import Counter
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from typing import Any

Record = dict[str, Any]


class RecordSet:
    """Per-type ordered collections of records, deduplicated by ``id``.

    Built incrementally during a collection run: types are added in
    retrieval order and records are only ever appended, never replaced
    or removed. Reading a type that has not been collected yet raises
    KeyError, which surfaces a misordered retrieval rule immediately.

    Example:
        records = RecordSet()
        records.add("appeals", [appeal_row])
        records.ids("appeals")  # [1]
    """

    def __init__(self) -> None:
        self._records: dict[str, list[Record]] = {}
        self._seen: dict[str, set[int]] = {}

    def add(self, entity_type: str, records: Iterable[Mapping[str, Any] | None]) -> list[Record]:
        """Append records of a type, skipping ``None`` and already-seen ids.

        Returns:
            The records that were actually added.
        """
        bucket = self._records.setdefault(entity_type, [])
        seen = self._seen.setdefault(entity_type, set())
        added: list[Record] = []
        for record in records:
            if record is None:
                continue
            record_id = record["id"]
            if record_id in seen:
                continue
            seen.add(record_id)
            row = dict(record)
            bucket.append(row)
            added.append(row)
        return added

    def __getitem__(self, entity_type: str) -> list[Record]:
        return self._records[entity_type]

    def __contains__(self, entity_type: object) -> bool:
        return entity_type in self._records

    def __iter__(self) -> Iterator[str]:
        return iter(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def get(self, entity_type: str) -> list[Record]:
        """Records of a type, or an empty list if the type was never added."""
        return self._records.get(entity_type, [])

    def items(self) -> Iterator[tuple[str, list[Record]]]:
        return iter(self._records.items())

    def ids(self, entity_type: str) -> list[int]:
        return [record["id"] for record in self[entity_type]]

    def values(self, entity_type: str, field_name: str) -> list[Any]:
        """Distinct non-null values of one field, in first-seen order."""
        seen: dict[Any, None] = {}
        for record in self[entity_type]:
            value = record.get(field_name)
            if value is not None:
                seen.setdefault(value, None)
        return list(seen)

    def where(self, entity_type: str, **equals: Any) -> list[Record]:
        """Records of a type whose fields equal all given values."""
        return [record for record in self[entity_type] if all(record.get(k) == v for k, v in equals.items())]

    def counts(self) -> dict[str, int]:
        return {entity_type: len(records) for entity_type, records in self._records.items()}


@dataclass(frozen=True)
class ExportDocument:
    """A deserialized export: document metadata plus its records."""

    metadata: dict[str, Any]
    records: RecordSet

    @property
    def sanitized(self) -> bool:
        return bool(self.metadata.get("sanitized", True))


@dataclass(frozen=True)
class UnresolvedReference:
    """An ``_id`` field that still looks like a pre-import id after rewriting."""

    entity_type: str
    field: str
    value: int
    description: str

    def __str__(self) -> str:
        return f"{self.description}: {self.entity_type}.{self.field}={self.value} was not reassociated"


@dataclass
class ImportResult:
    """Outcome of one import run, usable as an audit report.

    Attributes:
        id_mapping: entity type -> {original id -> id in the target database},
            populated for tracked types only
        created: number of new rows written per entity type
        reused: number of existing rows matched by natural key per entity type
        warnings: references the validation pass could not confirm
    """

    id_mapping: dict[str, dict[int, int]] = field(default_factory=dict)
    created: Counter[str] = field(default_factory=Counter)
    reused: Counter[str] = field(default_factory=Counter)
    warnings: list[UnresolvedReference] = field(default_factory=list)

    def mapped_id(self, entity_type: str, original_id: int) -> int | None:
        return self.id_mapping.get(entity_type, {}).get(original_id)

    def to_report(self) -> dict[str, Any]:
        """JSON-friendly summary (mapping keys become strings)."""
        return {
            "created": dict(self.created),
            "reused": dict(self.reused),
            "id_mapping": {entity_type: {str(k): v for k, v in mapping.items()} for entity_type, mapping in self.id_mapping.items()},
            "warnings": [str(warning) for warning in self.warnings],
        }


@dataclass(frozen=True)
class RecordDifference:
    """One record that differs between two documents."""

    entity_type: str
    index: int
    field: str
    left: Any
    right: Any
