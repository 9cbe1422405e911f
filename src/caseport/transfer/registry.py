# src/caseport/transfer/registry.py
"""Type registry: the static declaration of every exported entity type.

Declaration order is retrieval order. A retrieval rule may only read
records of the types listed in its ``depends_on``, and those types must be
declared before it. TypeRegistry.validate() checks this with a networkx
dependency graph, so a misordered declaration fails at construction
rather than halfway through an export.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable, Iterator, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

import networkx as nx
from sqlalchemy import Connection, Table

from caseport.contracts import CreationMode, Record, RecordSet, RegistryValidationError
from caseport.transfer.associations import Association, AssociationWrapper

RetrievalRule = Callable[[Connection, RecordSet], Iterable[Mapping[str, Any] | None]]
RecordValidator = Callable[[Record], list[str]]


@dataclass(frozen=True)
class SanitizeField:
    """A field (literal name or regex) whose values must be redacted.

    Attributes:
        pattern: Field name, or compiled regex matched with ``search``
        transform: Transform name; None selects by field name
        domain: Value-mapping domain; fields sharing a domain redact the same
            original value identically (defaults to the field name)
    """

    pattern: str | re.Pattern[str]
    transform: str | None = None
    domain: str | None = None

    def matches(self, field_name: str) -> bool:
        if isinstance(self.pattern, re.Pattern):
            return self.pattern.search(field_name) is not None
        return self.pattern == field_name

    def domain_for(self, field_name: str) -> str:
        return self.domain or field_name


@dataclass(frozen=True)
class ValidationExemption:
    """A documented ``_id`` field the post-reassociation check must not flag.

    Attributes:
        field: The exempted field
        reason: Why the field legitimately keeps a pre-offset value
        when: Optional predicate on the record; the exemption applies only if true
    """

    field: str
    reason: str
    when: Callable[[Record], bool] | None = None

    def applies(self, field_name: str, record: Record) -> bool:
        if field_name != self.field:
            return False
        return self.when is None or self.when(record)


@dataclass(frozen=True)
class EntityType:
    """Everything the exporter and importer need to know about one type."""

    name: str
    model_name: str
    table: Table
    retrieval: RetrievalRule
    depends_on: tuple[str, ...] = ()
    associations: tuple[Association, ...] = ()
    sanitize_fields: tuple[SanitizeField, ...] = ()
    track_imported_ids: bool = False
    reuse_existing: bool = False
    natural_key: tuple[str, ...] = ()
    creation_mode: CreationMode = CreationMode.CHECKED
    validation_exemptions: tuple[ValidationExemption, ...] = ()
    before_sanitize: Callable[[Record], None] | None = None
    validators: tuple[RecordValidator, ...] = ()
    expected_differences: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.reuse_existing and not self.natural_key:
            raise RegistryValidationError(f"'{self.name}' reuses existing records but declares no natural_key")

    @property
    def wrapper(self) -> AssociationWrapper:
        return AssociationWrapper(self.associations)

    @property
    def column_names(self) -> list[str]:
        return [column.name for column in self.table.columns]

    def sanitize_field_for(self, field_name: str) -> SanitizeField | None:
        """First sanitize declaration matching the field, if any."""
        for sanitize_field in self.sanitize_fields:
            if sanitize_field.matches(field_name):
                return sanitize_field
        return None

    def is_exempt(self, field_name: str, record: Record) -> bool:
        return any(exemption.applies(field_name, record) for exemption in self.validation_exemptions)


class TypeRegistry:
    """Ordered collection of EntityType declarations.

    Args:
        entity_types: Declarations in retrieval order
        root: Name of the root type (seeded with the export's root records)
        first_types_to_import: Types created before all others on import

    Raises:
        RegistryValidationError: If the declarations are inconsistent
    """

    def __init__(
        self,
        entity_types: Sequence[EntityType],
        *,
        root: str,
        first_types_to_import: Sequence[str] = (),
    ) -> None:
        self._types: dict[str, EntityType] = {}
        for entity_type in entity_types:
            if entity_type.name in self._types:
                raise RegistryValidationError(f"Entity type '{entity_type.name}' declared twice")
            self._types[entity_type.name] = entity_type
        self._by_model = {entity_type.model_name: entity_type for entity_type in entity_types}
        self.root = root
        self.first_types_to_import = tuple(first_types_to_import)
        self.validate()

    def __iter__(self) -> Iterator[EntityType]:
        return iter(self._types.values())

    def __len__(self) -> int:
        return len(self._types)

    def __contains__(self, name: object) -> bool:
        return name in self._types

    @property
    def names(self) -> list[str]:
        return list(self._types)

    @property
    def root_type(self) -> EntityType:
        return self._types[self.root]

    def get(self, name: str) -> EntityType:
        try:
            return self._types[name]
        except KeyError:
            raise KeyError(f"Unknown entity type '{name}'") from None

    def by_model_name(self, model_name: str) -> EntityType | None:
        """Entity type stored under ``model_name`` in polymorphic ``*_type`` fields."""
        return self._by_model.get(model_name)

    # === Validation ===

    def dependency_graph(self) -> nx.DiGraph:
        """Directed graph with an edge dependency -> dependent for every rule."""
        graph: nx.DiGraph = nx.DiGraph()
        graph.add_nodes_from(self._types)
        for entity_type in self._types.values():
            for dependency in entity_type.depends_on:
                graph.add_edge(dependency, entity_type.name)
        return graph

    def validate(self) -> None:
        """Check declaration consistency.

        Raises:
            RegistryValidationError: On unknown types, dependency cycles,
                out-of-order rules, or fields missing from a table
        """
        problems: list[str] = []
        if self.root not in self._types:
            problems.append(f"root type '{self.root}' is not declared")
        for name in self.first_types_to_import:
            if name not in self._types:
                problems.append(f"first type to import '{name}' is not declared")

        for entity_type in self._types.values():
            columns = set(entity_type.column_names)
            if "id" not in columns:
                problems.append(f"'{entity_type.name}' table has no id column")
            for dependency in entity_type.depends_on:
                if dependency not in self._types:
                    problems.append(f"'{entity_type.name}' depends on undeclared type '{dependency}'")
            for association in entity_type.associations:
                if association.field not in columns:
                    problems.append(f"'{entity_type.name}' association field '{association.field}' is not a column")
                if association.type_field is not None and association.type_field not in columns:
                    problems.append(f"'{entity_type.name}' type field '{association.type_field}' is not a column")
                for target in association.possible_targets:
                    if target not in self._types:
                        problems.append(f"'{entity_type.name}.{association.field}' points at undeclared type '{target}'")
            for key_field in entity_type.natural_key:
                if key_field not in columns:
                    problems.append(f"'{entity_type.name}' natural key field '{key_field}' is not a column")

        if problems:
            raise RegistryValidationError("Invalid type registry:\n  " + "\n  ".join(problems))

        graph = self.dependency_graph()
        if not nx.is_directed_acyclic_graph(graph):
            cycle = nx.find_cycle(graph)
            path = " -> ".join(edge[0] for edge in cycle) + f" -> {cycle[-1][1]}"
            raise RegistryValidationError(f"Retrieval rules form a cycle: {path}")

        position = {name: index for index, name in enumerate(self._types)}
        for dependency, dependent in graph.edges:
            if position[dependency] >= position[dependent]:
                suggested = ", ".join(nx.lexicographical_topological_sort(graph, key=position.__getitem__))
                raise RegistryValidationError(
                    f"'{dependent}' depends on '{dependency}', which is declared after it. A valid retrieval order is: {suggested}"
                )

    # === Derived import configuration ===

    @property
    def id_mapping_types(self) -> list[str]:
        """Types whose imported ids are tracked in the importer's id mapping."""
        return [t.name for t in self._types.values() if t.track_imported_ids]

    @property
    def reuse_record_types(self) -> list[str]:
        """Types looked up by natural key before creating a new record."""
        return [t.name for t in self._types.values() if t.reuse_existing]

    @property
    def raw_creation_types(self) -> list[str]:
        return [t.name for t in self._types.values() if t.creation_mode is CreationMode.RAW]

    def offset_id_fields(self) -> dict[str, list[str]]:
        """Per type, untyped reference fields that are adjusted by the id offset.

        These point at untracked types, whose imported ids are always
        ``original + offset``. References to tracked types are excluded:
        they are resolved through the id mapping instead.
        """
        known_types = self.reassociate_types
        return {
            entity_type.name: entity_type.wrapper.fieldnames_of_untyped_associations_with(known_types)
            for entity_type in self._types.values()
        }

    @property
    def reassociate_types(self) -> list[str]:
        """Types whose ids are adjusted by the offset rather than the id mapping."""
        return [name for name in self._types if name not in self.id_mapping_types]

    def reassociate_fields(self) -> dict[str, dict[str, list[str]]]:
        """Fields reassociated with imported records.

        Returns:
            ``{"type": {entity type: polymorphic fields}}`` merged with
            ``{tracked type: {entity type: untyped fields pointing at it}}``.
            Types without such fields are omitted from the inner dicts.
        """
        typed: dict[str, list[str]] = {}
        for entity_type in self._types.values():
            fields = sorted(a.field for a in entity_type.wrapper.typed_associations())
            if fields:
                typed[entity_type.name] = fields
        result: dict[str, dict[str, list[str]]] = {"type": typed}
        for tracked in self.id_mapping_types:
            per_type: dict[str, list[str]] = {}
            for entity_type in self._types.values():
                fields = sorted(a.field for a in entity_type.wrapper.untyped_associations_with(tracked))
                if fields:
                    per_type[entity_type.name] = fields
            result[tracked] = per_type
        return result

    def import_order(self) -> list[EntityType]:
        """First types to import, then every other type in declaration order."""
        first = [self._types[name] for name in self.first_types_to_import]
        rest = [t for name, t in self._types.items() if name not in self.first_types_to_import]
        return first + rest

    def expected_differences(self) -> dict[str, tuple[str, ...]]:
        return {t.name: t.expected_differences for t in self._types.values() if t.expected_differences}
