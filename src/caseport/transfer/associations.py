# src/caseport/transfer/associations.py
"""Association introspection over statically declared references.

Each entity type declares its outgoing references as Association values.
AssociationWrapper answers the questions the importer needs: which fields
point at which types, and which of them are polymorphic (the referenced
type is named by a sibling ``*_type`` field of the same record).
"""

from collections.abc import Iterable, Sequence
from dataclasses import dataclass


@dataclass(frozen=True)
class Association:
    """One reference field of an entity type.

    Attributes:
        field: Column holding the referenced id (or list of ids when many=True)
        target: Referenced entity type name; None for polymorphic references
        type_field: Sibling column naming the referenced type (polymorphic only)
        targets: Entity types a polymorphic reference may point at
        required: Creation fails if the reference cannot be resolved
        many: The field holds a list of ids rather than one id
    """

    field: str
    target: str | None = None
    type_field: str | None = None
    targets: tuple[str, ...] = ()
    required: bool = False
    many: bool = False

    def __post_init__(self) -> None:
        if self.type_field is None and self.target is None:
            raise ValueError(f"Association '{self.field}' needs a target or a type_field")
        if self.type_field is not None and self.target is not None:
            raise ValueError(f"Polymorphic association '{self.field}' must not name a fixed target")
        if self.type_field is not None and self.many:
            raise ValueError(f"Polymorphic association '{self.field}' cannot hold a list of ids")

    @property
    def polymorphic(self) -> bool:
        return self.type_field is not None

    @property
    def possible_targets(self) -> tuple[str, ...]:
        if self.target is not None:
            return (self.target,)
        return self.targets


def fieldnames(associations: Iterable[Association]) -> list[str]:
    """Sorted field names of the given associations."""
    return sorted(association.field for association in associations)


class AssociationWrapper:
    """Read-only view over one entity type's declared associations.

    Example:
        wrapper = AssociationWrapper(registry.get("tasks").associations)
        fieldnames(wrapper.typed_associations())  # ['appeal_id', 'assigned_to_id']
        fieldnames(wrapper.untyped_associations_with("users"))  # ['assigned_by_id', 'cancelled_by_id']
    """

    def __init__(self, associations: Sequence[Association]) -> None:
        self._associations = tuple(associations)

    @property
    def associations(self) -> tuple[Association, ...]:
        return self._associations

    def typed_associations(self, excluding: Iterable[str] = ()) -> list[Association]:
        """Polymorphic associations, minus the excluded field names."""
        excluded = set(excluding)
        return [a for a in self._associations if a.polymorphic and a.field not in excluded]

    def untyped_associations(self) -> list[Association]:
        return [a for a in self._associations if not a.polymorphic]

    def untyped_associations_with(self, target: str) -> list[Association]:
        """Foreign keys (no type field) that always point at ``target``."""
        return [a for a in self._associations if not a.polymorphic and a.target == target]

    def grouped_fieldnames_of_untyped_associations_with(self, known_types: Iterable[str]) -> dict[str, list[str]]:
        """Field names of untyped associations with any known type, grouped by target."""
        known = set(known_types)
        grouped: dict[str, list[str]] = {}
        for association in self.untyped_associations():
            if association.target in known:
                grouped.setdefault(association.target, []).append(association.field)
        return {target: sorted(fields) for target, fields in grouped.items()}

    def fieldnames_of_untyped_associations_with(self, known_types: Iterable[str]) -> list[str]:
        grouped = self.grouped_fieldnames_of_untyped_associations_with(known_types)
        return sorted(field for fields in grouped.values() for field in fields)

    def associations_except(self, excluding: Iterable[str]) -> list[Association]:
        """All associations whose field is not in ``excluding``."""
        excluded = set(excluding)
        return [a for a in self._associations if a.field not in excluded]

    def get(self, field_name: str) -> Association | None:
        for association in self._associations:
            if association.field == field_name:
                return association
        return None
