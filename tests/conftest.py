# tests/conftest.py
"""Shared fixtures for caseport tests.

The ``source_db`` fixture holds one small but complete appeal graph:

    appeal 1 (original)  <-- cavc_remand 1 --  appeal 2 (court remand)
      veteran 1 / person 1 (ssn 123-45-6789), claimant person 2
      tasks 1-3 (RootTask -> HearingTask -> ScheduleHearingTask), timer on task 3
      request_issue 1 -- decision_issue 1
      hearing 1 on hearing_day 1, virtual_hearing 1, linked to HearingTask 2
    appeal 2: RootTask 4
    users 1 (judge), 2 (intake), 3 (coordinator, member of organization 2)

Plus an unrelated appeal 3 (other veteran) with its own task and user,
which an export of appeal 1 or 2 must never include.
"""

import logging
import os
from collections.abc import Iterator
from datetime import date, datetime

import pytest
from hypothesis import Phase, Verbosity, settings
from structlog.stdlib import ProcessorFormatter

from caseport.core.database import CaseDB
from caseport.core.schema import (
    appeals_table,
    cavc_remands_table,
    claimants_table,
    decision_issues_table,
    hearing_days_table,
    hearing_task_associations_table,
    hearings_table,
    intakes_table,
    organizations_table,
    organizations_users_table,
    people_table,
    request_decision_issues_table,
    request_issues_table,
    task_timers_table,
    tasks_table,
    users_table,
    veterans_table,
    virtual_hearings_table,
)
from caseport.transfer.configuration import build_registry
from caseport.transfer.registry import TypeRegistry

ORIGINAL_UUID = "0b9e4a36-6f0e-4c57-9c0a-1f2d3e4a5b6c"
REMAND_UUID = "7d3f1c2a-8e9b-4a6d-b5c4-3e2f1a0b9c8d"
OTHER_UUID = "c4d5e6f7-a8b9-4c0d-8e1f-2a3b4c5d6e7f"

VETERAN_FILE_NUMBER = "123456789"
VETERAN_SSN = "123-45-6789"

CREATED = datetime(2021, 3, 4, 10, 30)

SEED_ROWS = {
    appeals_table: [
        {"id": 1, "uuid": ORIGINAL_UUID, "veteran_file_number": VETERAN_FILE_NUMBER, "docket_type": "evidence_submission",
         "stream_type": "original", "stream_docket_number": "200101-1", "receipt_date": date(2020, 1, 1), "created_at": CREATED},
        {"id": 2, "uuid": REMAND_UUID, "veteran_file_number": VETERAN_FILE_NUMBER, "docket_type": "evidence_submission",
         "stream_type": "court_remand", "stream_docket_number": "200101-1", "receipt_date": date(2021, 2, 1), "created_at": CREATED},
        {"id": 3, "uuid": OTHER_UUID, "veteran_file_number": "987654321", "docket_type": "direct_review",
         "stream_type": "original", "receipt_date": date(2021, 5, 5)},
    ],
    veterans_table: [
        {"id": 1, "file_number": VETERAN_FILE_NUMBER, "participant_id": "600001", "first_name": "Jane", "last_name": "Doe",
         "ssn": VETERAN_SSN},
        {"id": 2, "file_number": "987654321", "participant_id": "600009", "first_name": "Otto", "last_name": "Other"},
    ],
    people_table: [
        {"id": 1, "participant_id": "600001", "first_name": "Jane", "last_name": "Doe", "ssn": VETERAN_SSN,
         "date_of_birth": date(1960, 1, 2), "email_address": "jane.doe@example.org"},
        {"id": 2, "participant_id": "600002", "first_name": "John", "last_name": "Doe", "date_of_birth": date(1961, 6, 7)},
    ],
    intakes_table: [
        {"id": 1, "type": "AppealIntake", "detail_type": "Appeal", "detail_id": 1, "user_id": 2,
         "veteran_file_number": VETERAN_FILE_NUMBER, "completion_status": "success", "completed_at": CREATED},
    ],
    claimants_table: [
        {"id": 1, "type": "VeteranClaimant", "decision_review_type": "Appeal", "decision_review_id": 1, "participant_id": "600001"},
        {"id": 2, "type": "DependentClaimant", "decision_review_type": "Appeal", "decision_review_id": 2,
         "participant_id": "600002", "payee_code": "10"},
    ],
    tasks_table: [
        {"id": 1, "type": "RootTask", "appeal_type": "Appeal", "appeal_id": 1, "assigned_to_type": "Organization",
         "assigned_to_id": 1, "status": "on_hold"},
        {"id": 2, "type": "HearingTask", "appeal_type": "Appeal", "appeal_id": 1, "assigned_to_type": "Organization",
         "assigned_to_id": 2, "parent_id": 1, "status": "on_hold"},
        {"id": 3, "type": "ScheduleHearingTask", "appeal_type": "Appeal", "appeal_id": 1, "assigned_to_type": "User",
         "assigned_to_id": 3, "assigned_by_id": 1, "parent_id": 2, "status": "completed",
         "instructions": ["Veteran prefers a morning slot."]},
        {"id": 4, "type": "RootTask", "appeal_type": "Appeal", "appeal_id": 2, "assigned_to_type": "Organization",
         "assigned_to_id": 1, "status": "assigned"},
        {"id": 5, "type": "RootTask", "appeal_type": "Appeal", "appeal_id": 3, "assigned_to_type": "User",
         "assigned_to_id": 9, "status": "assigned"},
    ],
    task_timers_table: [
        {"id": 1, "task_id": 3, "submitted_at": CREATED},
    ],
    request_issues_table: [
        {"id": 1, "decision_review_type": "Appeal", "decision_review_id": 1, "benefit_type": "compensation",
         "contested_issue_description": "Service connection for left knee", "notes": "Knee pain since service",
         "vacols_sequence_id": 7, "veteran_participant_id": "600001", "decision_date": date(2019, 11, 1)},
    ],
    decision_issues_table: [
        {"id": 1, "decision_review_type": "Appeal", "decision_review_id": 1, "benefit_type": "compensation",
         "disposition": "denied", "decision_text": "Service connection for left knee is denied.",
         "description": "Left knee", "participant_id": "600001"},
    ],
    request_decision_issues_table: [
        {"id": 1, "request_issue_id": 1, "decision_issue_id": 1},
    ],
    cavc_remands_table: [
        {"id": 1, "source_appeal_id": 1, "remand_appeal_id": 2, "decision_issue_ids": [1], "created_by_id": 1,
         "cavc_docket_number": "20-1234", "cavc_judge_full_name": "Falvey", "cavc_decision_type": "remand",
         "remand_subtype": "jmr", "represented_by_attorney": True, "decision_date": date(2021, 1, 15),
         "instructions": "Readjudicate the knee claim."},
    ],
    hearing_days_table: [
        {"id": 1, "scheduled_for": date(2020, 6, 1), "request_type": "V", "regional_office": "RO17", "judge_id": 1,
         "created_by_id": 3, "bva_poc": "Pat Coordinator", "notes": "Room 2 booked"},
    ],
    hearings_table: [
        {"id": 1, "uuid": "f0e1d2c3-b4a5-4968-8776-655443322110", "appeal_id": 1, "hearing_day_id": 1, "judge_id": 1,
         "created_by_id": 3, "scheduled_time": "09:00", "disposition": "held", "notes": "Veteran attended with spouse",
         "representative_name": "Sam Advocate", "witness": "Spouse"},
    ],
    virtual_hearings_table: [
        {"id": 1, "hearing_type": "Hearing", "hearing_id": 1, "created_by_id": 3, "status": "active", "alias": "BVA0000123",
         "conference_id": 555, "appellant_email": "jane.doe@example.org", "judge_email": "judge@example.gov",
         "guest_pin": 1234567, "host_pin": 7654321, "guest_hearing_link": "https://care.example.gov/bva-app/?join=1"},
    ],
    hearing_task_associations_table: [
        {"id": 1, "hearing_type": "Hearing", "hearing_id": 1, "hearing_task_id": 2},
    ],
    users_table: [
        {"id": 1, "css_id": "BVAJUDGE", "station_id": "101", "full_name": "Judy Judge", "email": "judy@example.gov"},
        {"id": 2, "css_id": "INTAKECLERK", "station_id": "317", "full_name": "Ian Take"},
        {"id": 3, "css_id": "HEARINGCOORD", "station_id": "101", "full_name": "Pat Coordinator"},
        {"id": 9, "css_id": "UNRELATED", "station_id": "101", "full_name": "Una Related"},
    ],
    organizations_table: [
        {"id": 1, "type": "Bva", "name": "Board of Veterans' Appeals", "url": "bva"},
        {"id": 2, "type": "HearingsManagement", "name": "Hearings Management", "url": "hearings-management"},
    ],
    organizations_users_table: [
        {"id": 1, "organization_id": 2, "user_id": 3, "admin": False},
    ],
}


def seed_appeal_graph(db: CaseDB) -> None:
    """Insert the appeal graph described in the module docstring."""
    with db.connection() as conn:
        for table, rows in SEED_ROWS.items():
            # Rows set different columns, so no executemany
            for row in rows:
                conn.execute(table.insert().values(row))


@pytest.fixture
def registry() -> TypeRegistry:
    return build_registry()


@pytest.fixture
def source_db() -> Iterator[CaseDB]:
    db = CaseDB.in_memory()
    seed_appeal_graph(db)
    yield db
    db.close()


@pytest.fixture
def target_db() -> Iterator[CaseDB]:
    db = CaseDB.in_memory()
    yield db
    db.close()


@pytest.fixture(autouse=True)
def _stable_sanitize_key(monkeypatch: pytest.MonkeyPatch) -> None:
    """Pseudonyms are reproducible across exporters within a test."""
    monkeypatch.setenv("CASEPORT_SANITIZE_KEY", "test-sanitize-key")


@pytest.fixture(autouse=True)
def _drop_stale_log_handlers() -> Iterator[None]:
    """configure_logging() binds a handler to the stderr of the moment, which pytest and CliRunner swap out."""
    yield
    root = logging.getLogger()
    root.handlers = [h for h in root.handlers if not isinstance(h.formatter, ProcessorFormatter)]


# =============================================================================
# Hypothesis Configuration
# =============================================================================

# CI profile: Fast tests for continuous integration
settings.register_profile(
    "ci",
    max_examples=100,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,  # Disable deadline for CI (timing varies)
)

# Nightly profile: Thorough testing for scheduled runs
settings.register_profile(
    "nightly",
    max_examples=1000,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

# Debug profile: Minimal examples with verbose output for debugging
settings.register_profile(
    "debug",
    max_examples=10,
    verbosity=Verbosity.verbose,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

# Load profile from environment, default to "ci"
settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "ci"))
