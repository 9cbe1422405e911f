# src/caseport/core/schema.py
"""SQLAlchemy table definitions for the appeals record graph.

Uses SQLAlchemy Core (not ORM) for explicit control over queries and
compatibility with SQLite and PostgreSQL.

Table names double as entity type names throughout caseport. Reference
columns carry no database-level foreign keys: polymorphic references
(``*_type`` + ``*_id``) cannot have them, and import order would
otherwise have to satisfy constraints on references the importer may
legitimately leave unresolved. References are declared in the type
registry instead (see caseport.transfer.configuration).
"""

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    UniqueConstraint,
)

# Shared metadata for all tables
metadata = MetaData()

# === Appeals and the people they belong to ===

appeals_table = Table(
    "appeals",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("uuid", String(36), nullable=False, index=True),
    Column("veteran_file_number", String(20), nullable=False, index=True),
    Column("docket_type", String(32)),
    Column("stream_type", String(32)),
    Column("stream_docket_number", String(32)),
    Column("receipt_date", Date),
    Column("established_at", DateTime(timezone=True)),
    Column("created_at", DateTime(timezone=True)),
    Column("updated_at", DateTime(timezone=True)),
)

veterans_table = Table(
    "veterans",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("file_number", String(20), nullable=False, unique=True),
    Column("participant_id", String(20), index=True),
    Column("first_name", String(64)),
    Column("middle_name", String(64)),
    Column("last_name", String(64)),
    Column("ssn", String(11)),
    Column("date_of_death", Date),
    Column("created_at", DateTime(timezone=True)),
)

people_table = Table(
    "people",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("participant_id", String(20), nullable=False, unique=True),
    Column("first_name", String(64)),
    Column("middle_name", String(64)),
    Column("last_name", String(64)),
    Column("ssn", String(11)),
    Column("date_of_birth", Date),
    Column("email_address", String(128)),
    Column("created_at", DateTime(timezone=True)),
)

# Single-table inheritance in the source system; only AppealIntake rows are exported
intakes_table = Table(
    "intakes",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("type", String(32), nullable=False, default="AppealIntake"),
    Column("detail_type", String(32)),
    Column("detail_id", Integer),
    Column("user_id", Integer, nullable=False),
    Column("veteran_file_number", String(20), nullable=False),
    Column("completion_status", String(32)),
    Column("started_at", DateTime(timezone=True)),
    Column("completed_at", DateTime(timezone=True)),
)

claimants_table = Table(
    "claimants",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("type", String(32)),
    Column("decision_review_type", String(32)),
    Column("decision_review_id", Integer),
    Column("participant_id", String(20), nullable=False),
    Column("payee_code", String(8)),
    Column("created_at", DateTime(timezone=True)),
)

# === Tasks ===

tasks_table = Table(
    "tasks",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("type", String(64), nullable=False),
    Column("appeal_type", String(32), nullable=False),
    Column("appeal_id", Integer, nullable=False, index=True),
    Column("assigned_to_type", String(32), nullable=False),
    Column("assigned_to_id", Integer, nullable=False),
    Column("assigned_by_id", Integer),
    Column("cancelled_by_id", Integer),
    Column("parent_id", Integer, index=True),
    Column("status", String(32), nullable=False, default="assigned"),
    Column("instructions", JSON),  # list of strings
    Column("assigned_at", DateTime(timezone=True)),
    Column("closed_at", DateTime(timezone=True)),
    Column("created_at", DateTime(timezone=True)),
    Column("updated_at", DateTime(timezone=True)),
)

task_timers_table = Table(
    "task_timers",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("task_id", Integer, nullable=False, index=True),
    Column("submitted_at", DateTime(timezone=True)),
    Column("last_submitted_at", DateTime(timezone=True)),
    Column("processed_at", DateTime(timezone=True)),
    Column("created_at", DateTime(timezone=True)),
)

# === Issues ===

request_issues_table = Table(
    "request_issues",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("decision_review_type", String(32)),
    Column("decision_review_id", Integer, index=True),
    Column("benefit_type", String(32)),
    Column("contested_issue_description", Text),
    Column("nonrating_issue_description", Text),
    Column("unidentified_issue_text", Text),
    Column("notes", Text),
    Column("contested_decision_issue_id", Integer),
    Column("vacols_sequence_id", Integer),
    Column("veteran_participant_id", String(20)),
    Column("decision_date", Date),
    Column("closed_at", DateTime(timezone=True)),
    Column("created_at", DateTime(timezone=True)),
)

decision_issues_table = Table(
    "decision_issues",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("decision_review_type", String(32)),
    Column("decision_review_id", Integer, index=True),
    Column("benefit_type", String(32)),
    Column("disposition", String(32)),
    Column("decision_text", Text),
    Column("description", Text),
    Column("participant_id", String(20)),
    Column("caseflow_decision_date", Date),
    Column("created_at", DateTime(timezone=True)),
)

request_decision_issues_table = Table(
    "request_decision_issues",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("request_issue_id", Integer, nullable=False),
    Column("decision_issue_id", Integer, nullable=False),
    Column("created_at", DateTime(timezone=True)),
    UniqueConstraint("request_issue_id", "decision_issue_id"),
)

cavc_remands_table = Table(
    "cavc_remands",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("source_appeal_id", Integer, nullable=False),
    Column("remand_appeal_id", Integer),
    Column("decision_issue_ids", JSON),  # list of decision_issues ids
    Column("created_by_id", Integer, nullable=False),
    Column("updated_by_id", Integer),
    Column("cavc_docket_number", String(32), nullable=False),
    Column("cavc_judge_full_name", String(64)),
    Column("cavc_decision_type", String(32)),
    Column("remand_subtype", String(32)),
    Column("represented_by_attorney", Boolean),
    Column("decision_date", Date),
    Column("instructions", Text),
    Column("created_at", DateTime(timezone=True)),
)

# === Hearings ===

hearing_days_table = Table(
    "hearing_days",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("scheduled_for", Date, nullable=False),
    Column("request_type", String(8), nullable=False),
    Column("regional_office", String(16)),
    Column("room", String(32)),
    Column("judge_id", Integer),
    Column("created_by_id", Integer, nullable=False),
    Column("updated_by_id", Integer),
    Column("bva_poc", String(64)),
    Column("notes", Text),
    Column("created_at", DateTime(timezone=True)),
)

hearings_table = Table(
    "hearings",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("uuid", String(36)),
    Column("appeal_id", Integer, nullable=False, index=True),
    Column("hearing_day_id", Integer, nullable=False),
    Column("judge_id", Integer),
    Column("created_by_id", Integer),
    Column("updated_by_id", Integer),
    Column("scheduled_time", String(16)),
    Column("disposition", String(32)),
    Column("bva_poc", String(64)),
    Column("military_service", Text),
    Column("notes", Text),
    Column("representative_name", String(128)),
    Column("summary", Text),
    Column("witness", Text),
    Column("created_at", DateTime(timezone=True)),
)

virtual_hearings_table = Table(
    "virtual_hearings",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("hearing_type", String(32), nullable=False),
    Column("hearing_id", Integer, nullable=False),
    Column("created_by_id", Integer, nullable=False),
    Column("updated_by_id", Integer),
    Column("status", String(32)),
    Column("alias", String(64)),
    Column("alias_with_host", String(128)),
    Column("conference_id", Integer),
    Column("appellant_email", String(128)),
    Column("judge_email", String(128)),
    Column("representative_email", String(128)),
    Column("guest_pin", Integer),
    Column("host_pin", Integer),
    Column("guest_pin_long", String(16)),
    Column("host_pin_long", String(16)),
    Column("guest_hearing_link", String(256)),
    Column("host_hearing_link", String(256)),
    Column("created_at", DateTime(timezone=True)),
)

hearing_task_associations_table = Table(
    "hearing_task_associations",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("hearing_type", String(32), nullable=False),
    Column("hearing_id", Integer, nullable=False),
    Column("hearing_task_id", Integer, nullable=False),
    Column("created_at", DateTime(timezone=True)),
)

# === Users and organizations ===

users_table = Table(
    "users",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("css_id", String(32), nullable=False, unique=True),
    Column("station_id", String(8), nullable=False),
    Column("full_name", String(128)),
    Column("email", String(128)),
    Column("status", String(16), default="active"),
    Column("last_login_at", DateTime(timezone=True)),
    Column("created_at", DateTime(timezone=True)),
)

organizations_table = Table(
    "organizations",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("type", String(64)),
    Column("name", String(128), nullable=False),
    Column("url", String(64), unique=True),
    Column("participant_id", String(20)),
    Column("status", String(16), default="active"),
    Column("created_at", DateTime(timezone=True)),
)

organizations_users_table = Table(
    "organizations_users",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("organization_id", Integer, nullable=False),
    Column("user_id", Integer, nullable=False),
    Column("admin", Boolean, default=False),
    Column("created_at", DateTime(timezone=True)),
    UniqueConstraint("organization_id", "user_id"),
)
