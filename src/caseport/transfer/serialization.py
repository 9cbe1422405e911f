# src/caseport/transfer/serialization.py
"""Export document serialization.

Document layout:

    {
      "metadata": {
        "format_version": 1,
        "exported_at": "2024-05-01T12:00:00+00:00",
        "sanitized": true,
        "root_type": "appeals",
        "canonical_version": "sha256-rfc8785-v1",
        "record_counts": {"appeals": 1, ...},
        "content_hash": "<sha256 of the canonical JSON of records>"
      },
      "records": {
        "appeals": [{"id": 1, ...}, ...],
        ...
      }
    }

Records keep their original ids; reassociation is the importer's job.
"""

import json
from datetime import UTC, date, datetime
from typing import Any

from sqlalchemy import Date, DateTime, Table

from caseport.contracts import ExportDocument, MalformedDocumentError, Record, RecordSet
from caseport.core.canonical import CANONICAL_VERSION, normalize_for_json, stable_hash
from caseport.transfer.registry import TypeRegistry

FORMAT_VERSION = 1


def serialize(
    records: RecordSet,
    *,
    root_type: str,
    sanitized: bool,
    indent: int | None = 2,
    exported_at: datetime | None = None,
) -> str:
    """Render a (redacted) record set as a JSON document.

    Raises:
        ValueError: If a record holds a non-finite number
    """
    body = {entity_type: [normalize_for_json(record) for record in rows] for entity_type, rows in records.items()}
    metadata = {
        "format_version": FORMAT_VERSION,
        "exported_at": (exported_at or datetime.now(UTC)).isoformat(),
        "sanitized": sanitized,
        "root_type": root_type,
        "canonical_version": CANONICAL_VERSION,
        "record_counts": records.counts(),
        "content_hash": stable_hash(body),
    }
    return json.dumps({"metadata": metadata, "records": body}, indent=indent, ensure_ascii=False)


def deserialize(text: str | bytes, registry: TypeRegistry) -> ExportDocument:
    """Parse a document back into per-type record lists.

    Date and datetime columns are converted back to Python values using the
    registry's table definitions. Nothing is reassociated.

    Raises:
        MalformedDocumentError: If the document is not valid JSON, lacks the
            records section, names an unknown type, or holds a record without
            an integer id, a duplicate id, or a content hash mismatch
    """
    try:
        document = json.loads(text)
    except json.JSONDecodeError as e:
        raise MalformedDocumentError(f"Document is not valid JSON: {e}") from e

    if not isinstance(document, dict):
        raise MalformedDocumentError(f"Document must be a JSON object, got {type(document).__name__}")
    metadata = document.get("metadata", {})
    if not isinstance(metadata, dict):
        raise MalformedDocumentError("'metadata' must be an object")
    body = document.get("records")
    if not isinstance(body, dict):
        raise MalformedDocumentError("Document has no 'records' object")

    version = metadata.get("format_version", FORMAT_VERSION)
    if version != FORMAT_VERSION:
        raise MalformedDocumentError(f"Unsupported format_version {version!r} (expected {FORMAT_VERSION})")

    expected_hash = metadata.get("content_hash")
    if expected_hash is not None and stable_hash(body) != expected_hash:
        raise MalformedDocumentError("content_hash does not match the document's records; the document was modified or truncated")

    records = RecordSet()
    for entity_type, rows in body.items():
        if entity_type not in registry:
            raise MalformedDocumentError(f"Unknown entity type '{entity_type}'")
        if not isinstance(rows, list):
            raise MalformedDocumentError(f"'{entity_type}' must be a list of records")
        table = registry.get(entity_type).table
        seen: set[int] = set()
        parsed: list[Record] = []
        for index, row in enumerate(rows):
            location = f"{entity_type}[{index}]"
            if not isinstance(row, dict):
                raise MalformedDocumentError(f"{location} is not an object")
            record_id = row.get("id")
            if not isinstance(record_id, int) or isinstance(record_id, bool):
                raise MalformedDocumentError(f"{location} has no integer 'id' field")
            if record_id in seen:
                raise MalformedDocumentError(f"{location} repeats id {record_id}")
            seen.add(record_id)
            parsed.append(_coerce_record(table, row, location))
        records.add(entity_type, parsed)

    return ExportDocument(metadata=metadata, records=records)


def _coerce_record(table: Table, row: dict[str, Any], location: str) -> Record:
    record = dict(row)
    for column in table.columns:
        value = record.get(column.name)
        if not isinstance(value, str):
            continue
        try:
            if isinstance(column.type, DateTime):
                record[column.name] = datetime.fromisoformat(value)
            elif isinstance(column.type, Date):
                record[column.name] = date.fromisoformat(value)
        except ValueError as e:
            raise MalformedDocumentError(f"{location}.{column.name}: {e}") from e
    return record
