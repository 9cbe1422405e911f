# src/caseport/transfer/configuration.py
"""The appeals type registry.

Declaration order below is retrieval order: each rule receives the
records collected so far and returns the records of its own type.
Retrieval starts from one or more appeals and walks out to everything an
appeal needs to be reproduced in another database: its veteran, intake,
claimants, tasks, issues, CAVC remand, hearings, and the users,
organizations and people those point at.

Import policies:

- appeals, veterans, users, organizations and people are tracked: their
  new ids are recorded so untyped references to them can be rewritten.
- tracked types plus organizations_users are reused when a row with the
  same natural key already exists in the target database.
- appeals, organizations, users and hearing_days are imported first, since
  most other records reference them.
- tasks, hearings and cavc_remands are created raw (no validators, no
  events): their references are not all resolvable at creation time.
"""

import re
from collections.abc import Iterable
from typing import Any

from sqlalchemy import Connection, RowMapping, Table, select

from caseport.contracts import CreationMode, Record, RecordSet
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
from caseport.transfer.associations import Association
from caseport.transfer.registry import EntityType, RecordValidator, SanitizeField, TypeRegistry, ValidationExemption

ROOT_TYPE = "appeals"

# Value stored in polymorphic *_type columns for appeals
APPEAL_MODEL = "Appeal"


def select_where_in(conn: Connection, table: Table, column: str, values: Iterable[Any], **equals: Any) -> list[RowMapping]:
    """Rows whose ``column`` is one of ``values`` (and whose other columns equal ``equals``), by id.

    Issues no query when there are no values.
    """
    wanted = list(dict.fromkeys(value for value in values if value is not None))
    if not wanted:
        return []
    query = select(table).where(table.c[column].in_(wanted))
    for name, value in equals.items():
        query = query.where(table.c[name] == value)
    return list(conn.execute(query.order_by(table.c.id)).mappings())


def _appeal_ids(records: RecordSet) -> list[int]:
    return records.ids("appeals")


# === Retrieval rules ===


def _retrieve_appeals(conn: Connection, records: RecordSet) -> list[Any]:
    # The roots plus the source appeal of each root that is a CAVC remand
    remands = select_where_in(conn, cavc_remands_table, "remand_appeal_id", _appeal_ids(records))
    sources = select_where_in(conn, appeals_table, "id", [remand["source_appeal_id"] for remand in remands])
    return [*records["appeals"], *sources]


def _retrieve_veterans(conn: Connection, records: RecordSet) -> list[RowMapping]:
    return select_where_in(conn, veterans_table, "file_number", records.values("appeals", "veteran_file_number"))


def _retrieve_intakes(conn: Connection, records: RecordSet) -> list[RowMapping]:
    return select_where_in(conn, intakes_table, "detail_id", _appeal_ids(records), detail_type=APPEAL_MODEL, type="AppealIntake")


def _retrieve_claimants(conn: Connection, records: RecordSet) -> list[RowMapping]:
    return select_where_in(conn, claimants_table, "decision_review_id", _appeal_ids(records), decision_review_type=APPEAL_MODEL)


def _retrieve_tasks(conn: Connection, records: RecordSet) -> list[RowMapping]:
    return select_where_in(conn, tasks_table, "appeal_id", _appeal_ids(records), appeal_type=APPEAL_MODEL)


def _retrieve_task_timers(conn: Connection, records: RecordSet) -> list[RowMapping]:
    return select_where_in(conn, task_timers_table, "task_id", records.ids("tasks"))


def _retrieve_request_issues(conn: Connection, records: RecordSet) -> list[RowMapping]:
    return select_where_in(
        conn, request_issues_table, "decision_review_id", _appeal_ids(records), decision_review_type=APPEAL_MODEL
    )


def _retrieve_decision_issues(conn: Connection, records: RecordSet) -> list[RowMapping]:
    return select_where_in(
        conn, decision_issues_table, "decision_review_id", _appeal_ids(records), decision_review_type=APPEAL_MODEL
    )


def _retrieve_request_decision_issues(conn: Connection, records: RecordSet) -> list[RowMapping]:
    return select_where_in(conn, request_decision_issues_table, "request_issue_id", records.ids("request_issues"))


def _retrieve_cavc_remands(conn: Connection, records: RecordSet) -> list[RowMapping]:
    return select_where_in(conn, cavc_remands_table, "remand_appeal_id", _appeal_ids(records))


def _retrieve_hearings(conn: Connection, records: RecordSet) -> list[RowMapping]:
    # Hearings of the appeals, plus hearings linked to their HearingTasks
    hearing_task_ids = [task["id"] for task in records.where("tasks", type="HearingTask")]
    links = select_where_in(conn, hearing_task_associations_table, "hearing_task_id", hearing_task_ids, hearing_type="Hearing")
    by_appeal = select_where_in(conn, hearings_table, "appeal_id", _appeal_ids(records))
    by_task = select_where_in(conn, hearings_table, "id", [link["hearing_id"] for link in links])
    return [*by_appeal, *by_task]


def _retrieve_hearing_days(conn: Connection, records: RecordSet) -> list[RowMapping]:
    return select_where_in(conn, hearing_days_table, "id", records.values("hearings", "hearing_day_id"))


def _retrieve_virtual_hearings(conn: Connection, records: RecordSet) -> list[RowMapping]:
    return select_where_in(conn, virtual_hearings_table, "hearing_id", records.ids("hearings"), hearing_type="Hearing")


def _retrieve_hearing_task_associations(conn: Connection, records: RecordSet) -> list[RowMapping]:
    return select_where_in(
        conn, hearing_task_associations_table, "hearing_id", records.ids("hearings"), hearing_type="Hearing"
    )


def _referenced_user_ids(records: RecordSet) -> list[int]:
    tasks = records["tasks"]
    ids: list[int | None] = []
    ids += [task["assigned_by_id"] for task in tasks]
    ids += [task["cancelled_by_id"] for task in tasks]
    ids += [task["assigned_to_id"] for task in tasks if task["assigned_to_type"] == "User"]
    for remand in records["cavc_remands"]:
        ids += [remand["created_by_id"], remand["updated_by_id"]]
    ids += records.values("intakes", "user_id")
    for hearing_day in records["hearing_days"]:
        ids += [hearing_day["created_by_id"], hearing_day["updated_by_id"], hearing_day["judge_id"]]
    for hearing in records["hearings"]:
        ids += [hearing["created_by_id"], hearing["updated_by_id"], hearing["judge_id"]]
    for virtual_hearing in records["virtual_hearings"]:
        ids += [virtual_hearing["created_by_id"], virtual_hearing["updated_by_id"]]
    return [user_id for user_id in ids if user_id is not None]


def _retrieve_users(conn: Connection, records: RecordSet) -> list[RowMapping]:
    user_ids = list(dict.fromkeys(_referenced_user_ids(records)))
    if not user_ids:
        return []
    display_name = (users_table.c.css_id + " (" + users_table.c.station_id + ")").label("display_name")
    query = select(users_table, display_name).where(users_table.c.id.in_(user_ids)).order_by(users_table.c.id)
    return list(conn.execute(query).mappings())


def _retrieve_organizations(conn: Connection, records: RecordSet) -> list[RowMapping]:
    assigned = [task["assigned_to_id"] for task in records.where("tasks", assigned_to_type="Organization")]
    memberships = select_where_in(conn, organizations_users_table, "user_id", records.ids("users"))
    return select_where_in(conn, organizations_table, "id", [*assigned, *(m["organization_id"] for m in memberships)])


def _retrieve_organizations_users(conn: Connection, records: RecordSet) -> list[RowMapping]:
    return select_where_in(conn, organizations_users_table, "user_id", records.ids("users"))


def _retrieve_people(conn: Connection, records: RecordSet) -> list[RowMapping]:
    participant_ids = [*records.values("veterans", "participant_id"), *records.values("claimants", "participant_id")]
    return select_where_in(conn, people_table, "participant_id", participant_ids)


# === Hooks and validators ===


def _drop_display_name(record: Record) -> None:
    # Derived at retrieval time; never imported
    record.pop("display_name", None)


def _require(*fields: str) -> RecordValidator:
    def validate(record: Record) -> list[str]:
        return [f"'{name}' must not be blank" for name in fields if record.get(name) in (None, "")]

    return validate


def _file_number_is_numeric(record: Record) -> list[str]:
    file_number = record.get("file_number") or record.get("veteran_file_number")
    if file_number is not None and not str(file_number).isdigit():
        return [f"file number {file_number!r} is not numeric"]
    return []


def _assigned_to_organization(record: Record) -> bool:
    return record.get("assigned_to_type") == "Organization"


def _names(*fields: str) -> tuple[SanitizeField, ...]:
    return tuple(SanitizeField(name) for name in fields)


_FILE_NUMBER = "file_number"
_APPEAL_REVIEW = Association("decision_review_id", type_field="decision_review_type", targets=("appeals",), required=True)


def build_registry() -> TypeRegistry:
    """Construct (and validate) the appeals type registry."""
    entity_types = [
        EntityType(
            name="appeals",
            model_name=APPEAL_MODEL,
            table=appeals_table,
            retrieval=_retrieve_appeals,
            sanitize_fields=(SanitizeField("veteran_file_number", domain=_FILE_NUMBER),),
            track_imported_ids=True,
            reuse_existing=True,
            # uuid has no unique index, so lookups must not assume one
            natural_key=("uuid",),
            validators=(_require("uuid"), _file_number_is_numeric),
        ),
        EntityType(
            name="veterans",
            model_name="Veteran",
            table=veterans_table,
            retrieval=_retrieve_veterans,
            depends_on=("appeals",),
            sanitize_fields=(
                SanitizeField("file_number", domain=_FILE_NUMBER),
                *_names("first_name", "last_name", "middle_name", "ssn"),
            ),
            track_imported_ids=True,
            reuse_existing=True,
            natural_key=("file_number",),
            validators=(_file_number_is_numeric,),
        ),
        EntityType(
            name="intakes",
            model_name="AppealIntake",
            table=intakes_table,
            retrieval=_retrieve_intakes,
            depends_on=("appeals",),
            associations=(
                Association("detail_id", type_field="detail_type", targets=("appeals",), required=True),
                Association("user_id", target="users", required=True),
            ),
            sanitize_fields=(SanitizeField("veteran_file_number", domain=_FILE_NUMBER),),
        ),
        EntityType(
            name="claimants",
            model_name="Claimant",
            table=claimants_table,
            retrieval=_retrieve_claimants,
            depends_on=("appeals",),
            associations=(_APPEAL_REVIEW,),
        ),
        EntityType(
            name="tasks",
            model_name="Task",
            table=tasks_table,
            retrieval=_retrieve_tasks,
            depends_on=("appeals",),
            associations=(
                Association("appeal_id", type_field="appeal_type", targets=("appeals",), required=True),
                Association("assigned_to_id", type_field="assigned_to_type", targets=("users", "organizations"), required=True),
                Association("assigned_by_id", target="users"),
                Association("cancelled_by_id", target="users"),
                Association("parent_id", target="tasks"),
            ),
            sanitize_fields=_names("instructions"),
            creation_mode=CreationMode.RAW,
            validation_exemptions=(
                ValidationExemption(
                    "assigned_to_id",
                    "organizations assigned tasks keep their existing ids in the target database",
                    when=_assigned_to_organization,
                ),
            ),
        ),
        EntityType(
            name="task_timers",
            model_name="TaskTimer",
            table=task_timers_table,
            retrieval=_retrieve_task_timers,
            depends_on=("tasks",),
            associations=(Association("task_id", target="tasks", required=True),),
        ),
        EntityType(
            name="request_issues",
            model_name="RequestIssue",
            table=request_issues_table,
            retrieval=_retrieve_request_issues,
            depends_on=("appeals",),
            associations=(
                _APPEAL_REVIEW,
                Association("contested_decision_issue_id", target="decision_issues"),
            ),
            sanitize_fields=(
                *_names("notes", "contested_issue_description"),
                SanitizeField(re.compile(r"_(notes|text|description)")),
            ),
            validation_exemptions=(
                ValidationExemption("vacols_sequence_id", "refers to legacy VACOLS issues, which are not exported"),
            ),
        ),
        EntityType(
            name="decision_issues",
            model_name="DecisionIssue",
            table=decision_issues_table,
            retrieval=_retrieve_decision_issues,
            depends_on=("appeals",),
            associations=(_APPEAL_REVIEW,),
            sanitize_fields=_names("decision_text", "description"),
        ),
        EntityType(
            name="request_decision_issues",
            model_name="RequestDecisionIssue",
            table=request_decision_issues_table,
            retrieval=_retrieve_request_decision_issues,
            depends_on=("request_issues",),
            associations=(
                Association("request_issue_id", target="request_issues", required=True),
                Association("decision_issue_id", target="decision_issues", required=True),
            ),
        ),
        EntityType(
            name="cavc_remands",
            model_name="CavcRemand",
            table=cavc_remands_table,
            retrieval=_retrieve_cavc_remands,
            depends_on=("appeals",),
            associations=(
                Association("source_appeal_id", target="appeals", required=True),
                Association("remand_appeal_id", target="appeals"),
                Association("decision_issue_ids", target="decision_issues", many=True),
                Association("created_by_id", target="users", required=True),
                Association("updated_by_id", target="users"),
            ),
            # cavc_judge_full_name comes from a fixed list of judges; not sensitive
            sanitize_fields=_names("instructions"),
            creation_mode=CreationMode.RAW,
        ),
        EntityType(
            name="hearings",
            model_name="Hearing",
            table=hearings_table,
            retrieval=_retrieve_hearings,
            depends_on=("appeals", "tasks"),
            associations=(
                Association("appeal_id", target="appeals", required=True),
                Association("hearing_day_id", target="hearing_days", required=True),
                Association("judge_id", target="users"),
                Association("created_by_id", target="users"),
                Association("updated_by_id", target="users"),
            ),
            sanitize_fields=_names("bva_poc", "military_service", "notes", "representative_name", "summary", "witness"),
            creation_mode=CreationMode.RAW,
        ),
        EntityType(
            name="hearing_days",
            model_name="HearingDay",
            table=hearing_days_table,
            retrieval=_retrieve_hearing_days,
            depends_on=("hearings",),
            associations=(
                Association("judge_id", target="users"),
                Association("created_by_id", target="users", required=True),
                Association("updated_by_id", target="users"),
            ),
            sanitize_fields=_names("bva_poc", "notes"),
        ),
        EntityType(
            name="virtual_hearings",
            model_name="VirtualHearing",
            table=virtual_hearings_table,
            retrieval=_retrieve_virtual_hearings,
            depends_on=("hearings",),
            associations=(
                Association("hearing_id", type_field="hearing_type", targets=("hearings",), required=True),
                Association("created_by_id", target="users", required=True),
                Association("updated_by_id", target="users"),
            ),
            sanitize_fields=_names(
                "alias",
                "alias_with_host",
                "appellant_email",
                "conference_id",
                "guest_hearing_link",
                "guest_pin",
                "guest_pin_long",
                "host_hearing_link",
                "host_pin",
                "host_pin_long",
                "judge_email",
                "representative_email",
            ),
            validation_exemptions=(
                ValidationExemption("conference_id", "identifies a conference in the external video service"),
            ),
        ),
        EntityType(
            name="hearing_task_associations",
            model_name="HearingTaskAssociation",
            table=hearing_task_associations_table,
            retrieval=_retrieve_hearing_task_associations,
            depends_on=("hearings",),
            associations=(
                Association("hearing_id", type_field="hearing_type", targets=("hearings",), required=True),
                Association("hearing_task_id", target="tasks", required=True),
            ),
        ),
        EntityType(
            name="users",
            model_name="User",
            table=users_table,
            retrieval=_retrieve_users,
            depends_on=("tasks", "intakes", "cavc_remands", "hearings", "hearing_days", "virtual_hearings"),
            sanitize_fields=(SanitizeField("css_id", transform="random_css_id"), *_names("email", "full_name")),
            track_imported_ids=True,
            reuse_existing=True,
            natural_key=("css_id",),
            before_sanitize=_drop_display_name,
            validators=(_require("css_id", "station_id"),),
            expected_differences=("display_name",),
        ),
        EntityType(
            name="organizations",
            model_name="Organization",
            table=organizations_table,
            retrieval=_retrieve_organizations,
            depends_on=("tasks", "users"),
            track_imported_ids=True,
            reuse_existing=True,
            natural_key=("url",),
            validators=(_require("name"),),
        ),
        EntityType(
            name="organizations_users",
            model_name="OrganizationsUser",
            table=organizations_users_table,
            retrieval=_retrieve_organizations_users,
            depends_on=("users",),
            associations=(
                Association("organization_id", target="organizations", required=True),
                Association("user_id", target="users", required=True),
            ),
            reuse_existing=True,
            natural_key=("organization_id", "user_id"),
            validation_exemptions=(
                ValidationExemption("organization_id", "memberships may point at organizations reused from the target"),
                ValidationExemption("user_id", "memberships may point at users reused from the target"),
            ),
        ),
        EntityType(
            name="people",
            model_name="Person",
            table=people_table,
            retrieval=_retrieve_people,
            depends_on=("veterans", "claimants"),
            sanitize_fields=_names("date_of_birth", "email_address", "first_name", "last_name", "middle_name", "ssn"),
            track_imported_ids=True,
            reuse_existing=True,
            natural_key=("participant_id",),
        ),
    ]
    return TypeRegistry(
        entity_types,
        root=ROOT_TYPE,
        # hearing_days are needed by hearings
        first_types_to_import=("appeals", "organizations", "users", "hearing_days"),
    )
