# src/caseport/contracts/enums.py
"""Modes and kinds used across subsystem boundaries."""

from enum import StrEnum


class CreationMode(StrEnum):
    """How the importer writes records of an entity type.

    CHECKED runs column checks and registered validators, then emits a
    RecordCreated event. RAW inserts the row directly: no validation and
    no events, for types whose references cannot be resolved yet at
    creation time or whose live-usage callbacks must not fire on import.
    """

    CHECKED = "checked"
    RAW = "raw"


class ImportOutcome(StrEnum):
    """What happened to one imported record."""

    CREATED = "created"
    REUSED = "reused"
