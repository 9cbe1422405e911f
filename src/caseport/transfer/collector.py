# src/caseport/transfer/collector.py
"""Graph collection: the transitive closure of records related to the roots."""

from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from sqlalchemy import Connection, select

from caseport.contracts import CollectionError, RecordSet, RootNotFoundError
from caseport.core.logging import get_logger
from caseport.transfer.registry import TypeRegistry

logger = get_logger(__name__)


class GraphCollector:
    """Runs the registry's retrieval rules in declaration order.

    The record set is seeded with the root records under the root type.
    Each rule then receives everything collected so far and returns the
    records of its own type; results are deduplicated by id with nulls
    dropped. The root type's own rule runs too and may add further roots
    (e.g. the source appeal of a CAVC remand).

    A rule that raises aborts the whole collection with CollectionError.
    There is no partial result and no retry.

    Example:
        collector = GraphCollector(registry)
        with db.connection() as conn:
            records = collector.collect_by_ids(conn, [appeal_id])
    """

    def __init__(self, registry: TypeRegistry) -> None:
        self._registry = registry

    def collect(self, conn: Connection, root_records: Iterable[Mapping[str, Any]]) -> RecordSet:
        """Collect all records reachable from the given root records.

        Args:
            conn: Connection to the source database
            root_records: Rows of the root type

        Returns:
            RecordSet keyed by entity type name, in declaration order

        Raises:
            CollectionError: If any retrieval rule fails
        """
        records = RecordSet()
        root = self._registry.root
        records.add(root, root_records)
        log = logger.bind(root_type=root, root_ids=records.ids(root))

        for entity_type in self._registry:
            try:
                found = list(entity_type.retrieval(conn, records))
            except Exception as e:
                log.error("retrieval_failed", entity_type=entity_type.name, error=str(e))
                raise CollectionError(entity_type.name, e) from e
            added = records.add(entity_type.name, found)
            log.debug("collected", entity_type=entity_type.name, count=len(added))

        log.info("collection_complete", counts=records.counts())
        return records

    def collect_by_ids(self, conn: Connection, root_ids: Sequence[int]) -> RecordSet:
        """Collect starting from root records looked up by primary key.

        Raises:
            RootNotFoundError: If any id does not exist
        """
        table = self._registry.root_type.table
        rows = conn.execute(select(table).where(table.c.id.in_(list(root_ids))).order_by(table.c.id)).mappings().all()
        missing = sorted(set(root_ids) - {row["id"] for row in rows})
        if missing:
            raise RootNotFoundError(f"No {self._registry.root} record with id {', '.join(map(str, missing))}")
        return self.collect(conn, rows)
