# src/caseport/transfer/exporter.py
"""Sanitized JSON exporter.

Finds the root appeals, collects their record graph, redacts it and
renders the export document. Authorization is the caller's concern: the
exporter trusts whoever constructed it.
"""

from collections.abc import Sequence
from pathlib import Path
from typing import Any

from sqlalchemy import Connection, RowMapping, select

from caseport.contracts import RecordSet, RootNotFoundError
from caseport.core.config import ExportSettings
from caseport.core.database import CaseDB
from caseport.core.logging import get_logger
from caseport.core.security import get_sanitize_key
from caseport.core.schema import appeals_table
from caseport.transfer.collector import GraphCollector
from caseport.transfer.configuration import build_registry
from caseport.transfer.redaction import Sanitizer
from caseport.transfer.registry import TypeRegistry
from caseport.transfer.serialization import serialize
from caseport.transfer.transforms import TransformContext

logger = get_logger(__name__)


def find_appeal(conn: Connection, uuid: str) -> RowMapping:
    """Locate an appeal by its external uuid.

    Raises:
        RootNotFoundError: If no appeal has this uuid
    """
    row = conn.execute(select(appeals_table).where(appeals_table.c.uuid == uuid).order_by(appeals_table.c.id)).mappings().first()
    if row is None:
        raise RootNotFoundError(f"No appeal with uuid {uuid!r}")
    return row


class SanitizedJsonExporter:
    """Export appeals and everything they reference as one JSON document.

    Args:
        db: Source database
        registry: Type registry (the appeals registry by default)
        sanitize: Overrides settings.sanitize when given
        settings: Export settings (indent, key env var, RNG seed)

    Example:
        exporter = SanitizedJsonExporter(db)
        exporter.export(["3f1c..."])
        exporter.save(Path("appeal.json"))
    """

    def __init__(
        self,
        db: CaseDB,
        registry: TypeRegistry | None = None,
        *,
        sanitize: bool | None = None,
        settings: ExportSettings | None = None,
    ) -> None:
        self._db = db
        self._registry = registry or build_registry()
        self._settings = settings or ExportSettings()
        self.sanitize = self._settings.sanitize if sanitize is None else sanitize
        context = TransformContext.create(key=get_sanitize_key(self._settings.sanitize_key_env), seed=self._settings.seed)
        self._sanitizer = Sanitizer(self._registry, context=context, enabled=self.sanitize)
        self._collector = GraphCollector(self._registry)
        self.records: RecordSet | None = None
        self.file_contents: str | None = None

    @property
    def value_mapping(self) -> dict[Any, Any]:
        """Original -> redacted values of the runs so far, for audit."""
        return self._sanitizer.value_mapping

    def export(self, appeal_uuids: Sequence[str]) -> str:
        """Collect, redact and serialize the graphs rooted at the given appeals.

        Raises:
            RootNotFoundError: If any uuid matches no appeal
            CollectionError: If a retrieval rule fails
            RedactionError: If a transform fails
        """
        with self._db.connection() as conn:
            roots = [find_appeal(conn, uuid) for uuid in appeal_uuids]
            collected = self._collector.collect(conn, roots)

        redacted = RecordSet()
        for entity_type, records in collected.items():
            redacted.add(entity_type, self._sanitizer.redact_all(entity_type, records))

        self.records = redacted
        self.file_contents = serialize(
            redacted,
            root_type=self._registry.root,
            sanitized=self.sanitize,
            indent=self._settings.indent,
        )
        logger.info("export_complete", roots=len(roots), sanitized=self.sanitize, counts=redacted.counts())
        return self.file_contents

    def save(self, path: Path) -> Path:
        """Write the last export to ``path``.

        Raises:
            RuntimeError: If export() has not been called
        """
        if self.file_contents is None:
            raise RuntimeError("Nothing to save: call export() first")
        path.write_text(self.file_contents, encoding="utf-8")
        return path

    def record_counts(self) -> dict[str, int]:
        """Records per type in the last export.

        Raises:
            RuntimeError: If export() has not been called
        """
        if self.records is None:
            raise RuntimeError("Nothing exported yet: call export() first")
        return self.records.counts()
