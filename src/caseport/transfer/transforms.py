# src/caseport/transfer/transforms.py
"""Sanitization transforms.

A transform takes an original value, its value domain and the run's
TransformContext, and returns a replacement that never equals the
original. Keyed transforms derive their output from an HMAC of the
original value (same key, same output); random transforms draw from the
run's RNG and are never memoized by the redaction engine.

Transforms are selected per field: an explicit name on the registry's
SanitizeField wins, then FIELD_TRANSFORMS by exact field name, then
PATTERN_TRANSFORMS, then ``pseudonymize``.
"""

from __future__ import annotations

import random
import re
import string
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any

from caseport.core.security import get_sanitize_key, keyed_digest

_MAX_ATTEMPTS = 32

_FIRST_NAMES = (
    "Avery", "Blake", "Casey", "Dana", "Elliot", "Frankie", "Gray", "Harper", "Indy", "Jordan",
    "Kendall", "Logan", "Morgan", "Noel", "Oakley", "Parker", "Quinn", "Reese", "Sawyer", "Taylor",
)  # fmt: skip
_LAST_NAMES = (
    "Abbott", "Barrow", "Castillo", "Dorsey", "Ellison", "Fairbanks", "Gallagher", "Holloway",
    "Iverson", "Jennings", "Kowalski", "Lindqvist", "Mercado", "Nakamura", "Okafor", "Pruitt",
)  # fmt: skip
_WORDS = (
    "lorem", "ipsum", "dolor", "sit", "amet", "consectetur", "adipiscing", "elit", "sed", "do",
    "eiusmod", "tempor", "incididunt", "labore", "magna", "aliqua", "enim", "minim", "veniam",
    "quis", "nostrud", "exercitation", "ullamco", "laboris", "nisi", "aliquip", "commodo",
)  # fmt: skip


@dataclass
class TransformContext:
    """Per-run state shared by all transforms.

    Attributes:
        key: HMAC key for keyed transforms
        rng: Random source for random transforms
    """

    key: bytes = field(default_factory=get_sanitize_key)
    rng: random.Random = field(default_factory=random.Random)

    @classmethod
    def create(cls, *, key: bytes | None = None, seed: int | None = None) -> TransformContext:
        return cls(key=key if key is not None else get_sanitize_key(), rng=random.Random(seed))


Transform = Callable[[Any, str, TransformContext], Any]


def _digest_stream(value: Any, domain: str, ctx: TransformContext, attempt: int) -> Iterator[int]:
    counter = 0
    while True:
        yield from keyed_digest(f"{value}\x00{attempt}\x00{counter}", key=ctx.key, domain=domain)
        counter += 1


def _changed(original: Any, generate: Callable[[int], Any]) -> Any:
    """Call generate(attempt) until the result differs from the original.

    A string original must also not appear anywhere inside the result.
    """
    for attempt in range(_MAX_ATTEMPTS):
        candidate = generate(attempt)
        if candidate == original:
            continue
        if isinstance(original, str) and isinstance(candidate, str) and original and original in candidate:
            continue
        return candidate
    raise ValueError(f"could not produce a replacement different from the original after {_MAX_ATTEMPTS} attempts")


def _without(words: tuple[str, ...], original: str) -> tuple[str, ...]:
    """Filler words that do not contain the original."""
    return tuple(word for word in words if original not in word) or words


def _substitute_chars(text: str, stream: Iterator[int]) -> str:
    out = []
    for ch in text:
        if ch.isnumeric():
            out.append(str(next(stream) % 10))
        elif ch.isalpha():
            letter = string.ascii_lowercase[next(stream) % 26]
            out.append(letter.upper() if ch.isupper() else letter)
        else:
            out.append(ch)
    return "".join(out)


def _substitute_int(value: int, stream: Iterator[int]) -> int:
    digits = _substitute_chars(str(abs(value)), stream)
    if len(digits) > 1 and digits[0] == "0":
        digits = str(next(stream) % 9 + 1) + digits[1:]
    result = int(digits)
    return -result if value < 0 else result


def pseudonymize(value: Any, domain: str, ctx: TransformContext) -> Any:
    """Keyed character-class-preserving substitution.

    Digits become digits and letters become letters of the same case;
    punctuation and whitespace are kept, so formats survive. Values with
    no letters or digits become an opaque ``redacted-<hex>`` token.
    """
    if isinstance(value, bool):
        raise TypeError("boolean values cannot be pseudonymized")
    if isinstance(value, int):
        return _changed(value, lambda attempt: _substitute_int(value, _digest_stream(value, domain, ctx, attempt)))
    if isinstance(value, datetime | date):
        return similar_date(value, domain, ctx)
    if not isinstance(value, str):
        raise TypeError(f"cannot pseudonymize {type(value).__name__}")
    if not any(ch.isalpha() or ch.isnumeric() for ch in value):
        return f"redacted-{keyed_digest(value, key=ctx.key, domain=domain).hex()[:12]}"
    return _changed(value, lambda attempt: _substitute_chars(value, _digest_stream(value, domain, ctx, attempt)))


def random_ssn(value: Any, domain: str, ctx: TransformContext) -> str:
    """Nine digits in the original's layout (dashed or bare)."""
    text = str(value)

    def generate(attempt: int) -> str:
        stream = _digest_stream(text, domain, ctx, attempt)
        digits = "".join(str(next(stream) % 10) for _ in range(9))
        # SSNs never start with 9 or 000; keep generated ones plausible
        digits = str(next(stream) % 8 + 1) + digits[1:]
        if "-" in text:
            return f"{digits[:3]}-{digits[3:5]}-{digits[5:]}"
        return digits

    return _changed(text, generate)


def random_file_number(value: Any, domain: str, ctx: TransformContext) -> str:
    """Digits of the same length, never starting with zero."""
    text = str(value)

    def generate(attempt: int) -> str:
        stream = _digest_stream(text, domain, ctx, attempt)
        length = max(len(text), 8)
        return str(next(stream) % 9 + 1) + "".join(str(next(stream) % 10) for _ in range(length - 1))

    return _changed(text, generate)


def random_person_name(value: Any, domain: str, ctx: TransformContext) -> str:
    """A made-up name with as many parts as the original (at most two)."""
    text = str(value)
    parts = len(text.split())
    first_names = _without(_FIRST_NAMES, text)
    last_names = _without(_LAST_NAMES, text)

    def generate(attempt: int) -> str:
        if parts >= 2:
            return f"{ctx.rng.choice(first_names)} {ctx.rng.choice(last_names)}"
        if domain == "last_name":
            return ctx.rng.choice(last_names)
        return ctx.rng.choice(first_names)

    return _changed(text, generate)


def random_email(value: Any, domain: str, ctx: TransformContext) -> str:
    """``first.last<nn>@example.com`` derived from the original."""
    text = str(value)

    def generate(attempt: int) -> str:
        stream = _digest_stream(text, domain, ctx, attempt)
        first = _FIRST_NAMES[next(stream) % len(_FIRST_NAMES)].lower()
        last = _LAST_NAMES[next(stream) % len(_LAST_NAMES)].lower()
        return f"{first}.{last}{next(stream) % 100:02d}@example.com"

    return _changed(text, generate)


def random_css_id(value: Any, domain: str, ctx: TransformContext) -> str:
    """Upper-case letters and digits in the original's layout."""
    return pseudonymize(str(value).upper(), domain, ctx)


def obfuscate_sentence(value: Any, domain: str, ctx: TransformContext) -> str:
    """Replace every word with a filler word, keeping punctuation and spacing."""
    text = str(value)
    words = _without(_WORDS, text)

    def generate(attempt: int) -> str:
        return re.sub(r"[^\W_]+", lambda m: ctx.rng.choice(words), text)

    if not re.search(r"[^\W_]", text):
        return pseudonymize(text, domain, ctx)
    return _changed(text, generate)


def similar_date(value: Any, domain: str, ctx: TransformContext) -> Any:
    """Shift a date or datetime by 1-30 days either way (ISO strings too)."""
    if isinstance(value, str):
        parsed: date = datetime.fromisoformat(value) if "T" in value or " " in value else date.fromisoformat(value)
        return similar_date(parsed, domain, ctx).isoformat()
    if not isinstance(value, date):
        raise TypeError(f"similar_date needs a date, got {type(value).__name__}")
    days = ctx.rng.randint(1, 30) * ctx.rng.choice((-1, 1))
    return value + timedelta(days=days)


def random_pin(value: Any, domain: str, ctx: TransformContext) -> Any:
    """Random digits of the same length; ints stay ints."""
    text = str(abs(value)) if isinstance(value, int) and not isinstance(value, bool) else str(value)
    length = max(len(text), 4)

    def generate(attempt: int) -> str:
        return str(ctx.rng.randint(1, 9)) + "".join(str(ctx.rng.randint(0, 9)) for _ in range(length - 1))

    pin = _changed(text, generate)
    if isinstance(value, int) and not isinstance(value, bool):
        return int(pin)
    return pin


TRANSFORMS: dict[str, Transform] = {
    "pseudonymize": pseudonymize,
    "random_ssn": random_ssn,
    "random_file_number": random_file_number,
    "random_person_name": random_person_name,
    "random_email": random_email,
    "random_css_id": random_css_id,
    "obfuscate_sentence": obfuscate_sentence,
    "similar_date": similar_date,
    "random_pin": random_pin,
}

FIELD_TRANSFORMS: dict[str, str] = {
    "ssn": "random_ssn",
    "css_id": "random_css_id",
    "file_number": "random_file_number",
    "veteran_file_number": "random_file_number",
    "first_name": "random_person_name",
    "middle_name": "random_person_name",
    "last_name": "random_person_name",
    "full_name": "random_person_name",
    "representative_name": "random_person_name",
    "bva_poc": "random_person_name",
    "date_of_birth": "similar_date",
    "instructions": "obfuscate_sentence",
    "notes": "obfuscate_sentence",
    "summary": "obfuscate_sentence",
    "witness": "obfuscate_sentence",
    "military_service": "obfuscate_sentence",
    "decision_text": "obfuscate_sentence",
    "description": "obfuscate_sentence",
}

PATTERN_TRANSFORMS: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"email"), "random_email"),
    (re.compile(r"_pin(_long)?$"), "random_pin"),
    (re.compile(r"_(notes|text|description)"), "obfuscate_sentence"),
)


def transform_name_for(field_name: str) -> str:
    """Default transform for a field with no explicit transform declared."""
    if field_name in FIELD_TRANSFORMS:
        return FIELD_TRANSFORMS[field_name]
    for pattern, name in PATTERN_TRANSFORMS:
        if pattern.search(field_name):
            return name
    return "pseudonymize"
