# src/caseport/transfer/importer.py
"""Sanitized JSON importer: recreates an exported record graph in a target database.

Records are created type by type in the registry's import order. Before
each record is written, every reference field is rewritten:

- references to tracked types (appeals, veterans, users, organizations,
  people) go through the id mapping, which holds the id each imported
  record of those types ended up with (a new offset id, or the id of a
  reused existing row);
- references to untracked types are moved by the id offset, matching the
  ``original + offset`` id their target is created with;
- polymorphic references pick one of the two by the model name stored in
  their ``*_type`` field; an unknown model name is left alone.

Afterwards a validation pass flags ``_id`` fields, and items of ``_ids``
lists, still holding a value below the offset. These are reported as
warnings on the ImportResult, not raised: some fields legitimately keep
their values.

The importer does not manage transactions. Run it inside one
(``CaseDB.connection()``) so a failure leaves the target untouched.
"""

from sqlalchemy import Connection, and_, select

from caseport.contracts import (
    CreationMode,
    ExportDocument,
    ImportOutcome,
    ImportResult,
    MissingDependencyError,
    Record,
    RecordValidationError,
    UnresolvedReference,
)
from caseport.core.config import DEFAULT_ID_OFFSET
from caseport.core.database import CaseDB
from caseport.core.events import EventBusProtocol, NullEventBus, RecordCreated
from caseport.core.logging import get_logger
from caseport.transfer.associations import Association
from caseport.transfer.configuration import build_registry
from caseport.transfer.registry import EntityType, TypeRegistry

logger = get_logger(__name__)


class SanitizedJsonImporter:
    """Import one deserialized export document.

    Args:
        registry: Type registry the document was exported with
        document: Deserialized document (see serialization.deserialize)
        id_offset: Added to the ids of created records
        event_bus: Receives a RecordCreated event per checked creation

    Example:
        document = deserialize(path.read_text(), registry)
        importer = SanitizedJsonImporter(registry, document)
        with db.connection() as conn:
            result = importer.import_into(conn)
    """

    def __init__(
        self,
        registry: TypeRegistry,
        document: ExportDocument,
        *,
        id_offset: int = DEFAULT_ID_OFFSET,
        event_bus: EventBusProtocol | None = None,
    ) -> None:
        self._registry = registry
        self._document = document
        self.id_offset = id_offset
        self._events: EventBusProtocol = event_bus or NullEventBus()
        self._reassociate_fields = registry.reassociate_fields()
        self._offset_id_fields = registry.offset_id_fields()
        self._document_ids = {name: set(document.records.ids(name)) for name in document.records}
        self.id_mapping: dict[str, dict[int, int]] = {name: {} for name in registry.id_mapping_types}

    def import_into(self, conn: Connection) -> ImportResult:
        """Create (or reuse) every record of the document.

        Raises:
            MissingDependencyError: If a required reference cannot be resolved
            RecordValidationError: If checked creation rejects a record
            sqlalchemy.exc.IntegrityError: If a created id already exists
                (e.g. the same document imported twice)
        """
        result = ImportResult(id_mapping=self.id_mapping)
        for entity_type in self._registry.import_order():
            for record in self._document.records.get(entity_type.name):
                outcome = self._import_record(conn, entity_type, record, result)
                if outcome is ImportOutcome.REUSED:
                    result.reused[entity_type.name] += 1
                else:
                    result.created[entity_type.name] += 1

        logger.info(
            "import_complete",
            created=dict(result.created),
            reused=dict(result.reused),
            warnings=len(result.warnings),
        )
        return result

    # === Per record ===

    def _import_record(self, conn: Connection, entity_type: EntityType, record: Record, result: ImportResult) -> ImportOutcome:
        original_id = record["id"]
        description = f"{entity_type.model_name} #{original_id}"
        self._check_required(entity_type, record, description)

        values = dict(record)
        resolved: set[str] = set()
        self._reassociate_typed(entity_type, values, resolved)
        self._reassociate_untyped(entity_type, values, resolved)
        self._apply_offset(entity_type, values)

        if entity_type.reuse_existing:
            existing_id = self._find_existing(conn, entity_type, values)
            if existing_id is not None:
                self._track(entity_type, original_id, existing_id)
                logger.debug("record_reused", entity_type=entity_type.name, original_id=original_id, id=existing_id)
                return ImportOutcome.REUSED

        values["id"] = original_id + self.id_offset
        self._track(entity_type, original_id, values["id"])

        result.warnings.extend(self._unresolved_references(entity_type, values, resolved, description))

        if entity_type.creation_mode is CreationMode.RAW:
            self._create_raw(conn, entity_type, values)
        else:
            self._create_checked(conn, entity_type, values, original_id, description)
        return ImportOutcome.CREATED

    def _track(self, entity_type: EntityType, original_id: int, new_id: int) -> None:
        if entity_type.track_imported_ids:
            self.id_mapping[entity_type.name][original_id] = new_id

    # === Reassociation ===

    def _reassociate_typed(self, entity_type: EntityType, values: Record, resolved: set[str]) -> None:
        for field_name in self._reassociate_fields["type"].get(entity_type.name, []):
            association = entity_type.wrapper.get(field_name)
            value = values.get(field_name)
            if association is None or value is None:
                continue
            target = self._registry.by_model_name(values.get(association.type_field) or "")
            if target is None:
                # Unknown model name: left for the validation pass to report
                continue
            if target.track_imported_ids:
                mapped = self.id_mapping[target.name].get(value)
                if mapped is not None:
                    values[field_name] = mapped
                    resolved.add(field_name)
            else:
                values[field_name] = value + self.id_offset

    def _reassociate_untyped(self, entity_type: EntityType, values: Record, resolved: set[str]) -> None:
        for tracked in self._registry.id_mapping_types:
            mapping = self.id_mapping[tracked]
            for field_name in self._reassociate_fields[tracked].get(entity_type.name, []):
                value = values.get(field_name)
                if isinstance(value, list):
                    # Items missing from the mapping stay as they are for the validation pass
                    values[field_name] = [mapping.get(item, item) for item in value]
                    if all(item in mapping for item in value):
                        resolved.add(field_name)
                elif value is not None and value in mapping:
                    values[field_name] = mapping[value]
                    resolved.add(field_name)

    def _apply_offset(self, entity_type: EntityType, values: Record) -> None:
        for field_name in self._offset_id_fields.get(entity_type.name, []):
            value = values.get(field_name)
            if value is None:
                continue
            if isinstance(value, list):
                values[field_name] = [item + self.id_offset for item in value]
            else:
                values[field_name] = value + self.id_offset

    def _check_required(self, entity_type: EntityType, record: Record, description: str) -> None:
        """Raise if a required reference points at nothing this import can provide.

        Raises:
            MissingDependencyError: On the first unresolvable required reference
        """
        for association in entity_type.associations:
            if not association.required:
                continue
            target = self._target_of(association, record)
            if target is None:
                continue
            value = record.get(association.field)
            ids = value if association.many and isinstance(value, list) else [value]
            for target_id in ids:
                if target_id is None or not self._resolvable(target, target_id):
                    raise MissingDependencyError(entity_type.name, association.field, target_id, description)

    def _target_of(self, association: Association, record: Record) -> str | None:
        if not association.polymorphic:
            return association.target
        target = self._registry.by_model_name(record.get(association.type_field) or "")
        return target.name if target is not None else None

    def _resolvable(self, target: str, target_id: int) -> bool:
        return target_id in self.id_mapping.get(target, {}) or target_id in self._document_ids.get(target, set())

    # === Reuse ===

    def _find_existing(self, conn: Connection, entity_type: EntityType, values: Record) -> int | None:
        key = {name: values.get(name) for name in entity_type.natural_key}
        if any(value is None for value in key.values()):
            return None
        table = entity_type.table
        query = select(table.c.id).where(and_(*(table.c[name] == value for name, value in key.items()))).order_by(table.c.id)
        return conn.execute(query).scalars().first()

    # === Validation ===

    def _unresolved_references(
        self, entity_type: EntityType, values: Record, resolved: set[str], description: str
    ) -> list[UnresolvedReference]:
        found = []
        for field_name, value in values.items():
            if field_name in resolved or entity_type.is_exempt(field_name, values):
                continue
            if field_name.endswith("_id"):
                candidates = [value]
            elif field_name.endswith("_ids") and isinstance(value, list):
                candidates = value
            else:
                continue
            for item in candidates:
                if not isinstance(item, int) or isinstance(item, bool) or item >= self.id_offset:
                    continue
                warning = UnresolvedReference(entity_type.name, field_name, item, description)
                logger.warning("unresolved_reference", entity_type=entity_type.name, field=field_name, value=item, record=description)
                found.append(warning)
        return found

    # === Creation ===

    def _create_raw(self, conn: Connection, entity_type: EntityType, values: Record) -> None:
        # Unknown fields are dropped, nothing is checked, no events
        columns = set(entity_type.column_names)
        conn.execute(entity_type.table.insert().values({k: v for k, v in values.items() if k in columns}))

    def _create_checked(self, conn: Connection, entity_type: EntityType, values: Record, original_id: int, description: str) -> None:
        problems = self._check_record(entity_type, values)
        if problems:
            raise RecordValidationError(entity_type.name, description, problems)
        conn.execute(entity_type.table.insert().values(values))
        self._events.emit(
            RecordCreated(entity_type=entity_type.name, record_id=values["id"], original_id=original_id, values=dict(values))
        )

    def _check_record(self, entity_type: EntityType, values: Record) -> list[str]:
        names = set(entity_type.column_names)
        problems = [f"unknown field '{name}'" for name in values if name not in names]
        for column in entity_type.table.columns:
            if column.primary_key or column.nullable or column.default is not None:
                continue
            if values.get(column.name) is None:
                problems.append(f"'{column.name}' must not be null")
        for validator in entity_type.validators:
            problems.extend(validator(values))
        return problems


def import_document(
    db: CaseDB,
    document: ExportDocument,
    *,
    registry: TypeRegistry | None = None,
    id_offset: int = DEFAULT_ID_OFFSET,
    event_bus: EventBusProtocol | None = None,
) -> ImportResult:
    """Import a document in a single transaction on ``db``."""
    importer = SanitizedJsonImporter(registry or build_registry(), document, id_offset=id_offset, event_bus=event_bus)
    with db.connection() as conn:
        return importer.import_into(conn)
