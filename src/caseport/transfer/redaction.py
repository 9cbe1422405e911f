# src/caseport/transfer/redaction.py
"""Field-level redaction of collected records.

The Sanitizer keeps a value mapping for the duration of one export run:
once an original value has been redacted in a domain, every later
occurrence of that value in the same domain gets the same replacement.
This is what keeps a veteran's file number consistent between the
veteran, the appeal and the intake after sanitization.

Some transforms and fields are exempt from the mapping (see
MAPPED_VALUES_IGNORED_TRANSFORMS / MAPPED_VALUES_IGNORED_FIELDS): random
pins, jittered dates and filler sentences need no repeatability, and
name parts are so often shared by unrelated people that a shared
mapping would link them.
"""

from collections.abc import Hashable
from typing import Any

from caseport.contracts import Record, RedactionError, RegistryValidationError
from caseport.transfer.registry import EntityType, TypeRegistry
from caseport.transfer.transforms import TRANSFORMS, Transform, TransformContext, transform_name_for


# Fields whose mapped value should not be saved, since distinct original
# values may map to the same new value
MAPPED_VALUES_IGNORED_FIELDS = frozenset({"first_name", "middle_name", "last_name"})
MAPPED_VALUES_IGNORED_TRANSFORMS = frozenset({"random_pin", "obfuscate_sentence", "similar_date"})

# Never redacted, whatever the patterns say
_PROTECTED_FIELDS = frozenset({"id"})


def save_mapped_value(transform_name: str, field_name: str) -> bool:
    """Whether a redacted value is memoized in the value mapping."""
    return not (transform_name in MAPPED_VALUES_IGNORED_TRANSFORMS or field_name in MAPPED_VALUES_IGNORED_FIELDS)


def _mapping_key(value: Any) -> Hashable:
    # Values from one column share a type; include it so 1 and "1" stay apart
    return (type(value).__name__, value)


class Sanitizer:
    """Redacts sensitive fields of records according to the type registry.

    Args:
        registry: Type registry holding each type's sanitize fields
        context: Transform key and RNG (a fresh random-key context by default)
        enabled: False for the unsanitized admin mode; before_sanitize hooks
            still run so derived fields never round-trip
        transforms: Transform table (defaults to transforms.TRANSFORMS)

    Example:
        sanitizer = Sanitizer(registry)
        clean = sanitizer.redact("veterans", veteran_row)
    """

    def __init__(
        self,
        registry: TypeRegistry,
        *,
        context: TransformContext | None = None,
        enabled: bool = True,
        transforms: dict[str, Transform] | None = None,
    ) -> None:
        self._registry = registry
        self._context = context or TransformContext.create()
        self._transforms = transforms if transforms is not None else TRANSFORMS
        self.enabled = enabled
        self._value_mapping: dict[tuple[str, Hashable], Any] = {}

        unknown = sorted(
            f"{t.name}.{f.pattern if isinstance(f.pattern, str) else f.pattern.pattern} -> {f.transform}"
            for t in registry
            for f in t.sanitize_fields
            if f.transform is not None and f.transform not in self._transforms
        )
        if unknown:
            raise RegistryValidationError(f"Unknown sanitization transforms: {', '.join(unknown)}")

    @property
    def value_mapping(self) -> dict[tuple[str, Hashable], Any]:
        """Copy of (domain, (type name, original)) -> redacted value."""
        return dict(self._value_mapping)

    def redact(self, entity_type: str | EntityType, record: Record) -> Record:
        """Return a sanitized copy of one record.

        Raises:
            RedactionError: If a transform fails; no partial record is returned
        """
        declaration = entity_type if isinstance(entity_type, EntityType) else self._registry.get(entity_type)
        result = dict(record)
        if declaration.before_sanitize is not None:
            declaration.before_sanitize(result)
        if not self.enabled:
            return result

        for field_name, value in list(result.items()):
            if field_name in _PROTECTED_FIELDS:
                continue
            sanitize_field = declaration.sanitize_field_for(field_name)
            if sanitize_field is None:
                continue
            transform_name = sanitize_field.transform or transform_name_for(field_name)
            result[field_name] = self._redact_value(
                declaration.name,
                field_name,
                value,
                transform_name,
                sanitize_field.domain_for(field_name),
            )
        return result

    def redact_all(self, entity_type: str, records: list[Record]) -> list[Record]:
        return [self.redact(entity_type, record) for record in records]

    def _redact_value(self, entity_type: str, field_name: str, value: Any, transform_name: str, domain: str) -> Any:
        if value is None or value == "":
            return value
        if isinstance(value, list):
            return [self._redact_value(entity_type, field_name, item, transform_name, domain) for item in value]

        memoize = save_mapped_value(transform_name, field_name) and isinstance(value, Hashable)
        key = (domain, _mapping_key(value))
        if memoize and key in self._value_mapping:
            return self._value_mapping[key]

        try:
            transform = self._transforms[transform_name]
            new_value = transform(value, domain, self._context)
        except Exception as e:
            raise RedactionError(entity_type, field_name, transform_name, e) from e

        if memoize:
            self._value_mapping[key] = new_value
        return new_value
