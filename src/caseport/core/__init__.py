# src/caseport/core/__init__.py
"""Core infrastructure: Canonical, Configuration, Database, Schema, Events, Logging."""

from caseport.core.canonical import (
    CANONICAL_VERSION,
    canonical_json,
    normalize_for_json,
    stable_hash,
)
from caseport.core.config import (
    CaseportSettings,
    DatabaseSettings,
    ExportSettings,
    ImportSettings,
    load_settings,
)
from caseport.core.database import CaseDB
from caseport.core.events import (
    EventBus,
    EventBusProtocol,
    NullEventBus,
    RecordCreated,
)
from caseport.core.logging import (
    configure_logging,
    get_logger,
)

__all__ = [
    "CANONICAL_VERSION",
    "CaseDB",
    "CaseportSettings",
    "DatabaseSettings",
    "EventBus",
    "EventBusProtocol",
    "ExportSettings",
    "ImportSettings",
    "NullEventBus",
    "RecordCreated",
    "canonical_json",
    "configure_logging",
    "get_logger",
    "load_settings",
    "normalize_for_json",
    "stable_hash",
]
