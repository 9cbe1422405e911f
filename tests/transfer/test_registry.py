# tests/transfer/test_registry.py
"""Tests for the type registry and the appeals declaration."""

import re
from typing import Any

import pytest

from caseport.contracts import CreationMode, RegistryValidationError
from caseport.core.schema import appeals_table, tasks_table, users_table, veterans_table
from caseport.transfer.associations import Association
from caseport.transfer.registry import EntityType, SanitizeField, TypeRegistry, ValidationExemption


def _nothing(conn: Any, records: Any) -> list[Any]:
    return []


def _type(name: str, table: Any, depends_on: tuple[str, ...] = (), **kwargs: Any) -> EntityType:
    return EntityType(name=name, model_name=name.title(), table=table, retrieval=_nothing, depends_on=depends_on, **kwargs)


class TestRegistryValidation:
    def test_valid_order_is_accepted(self) -> None:
        registry = TypeRegistry(
            [_type("appeals", appeals_table), _type("veterans", veterans_table, ("appeals",))],
            root="appeals",
        )

        assert registry.names == ["appeals", "veterans"]

    def test_dependency_declared_later_is_rejected_with_suggestion(self) -> None:
        with pytest.raises(RegistryValidationError, match="declared after it") as exc_info:
            TypeRegistry(
                [_type("appeals", appeals_table), _type("veterans", veterans_table, ("users",)), _type("users", users_table)],
                root="appeals",
            )

        assert "appeals, users, veterans" in str(exc_info.value)

    def test_cycle_is_rejected(self) -> None:
        with pytest.raises(RegistryValidationError, match="cycle"):
            TypeRegistry(
                [_type("appeals", appeals_table, ("users",)), _type("users", users_table, ("appeals",))],
                root="appeals",
            )

    def test_unknown_dependency_is_rejected(self) -> None:
        with pytest.raises(RegistryValidationError, match="undeclared type 'hearings'"):
            TypeRegistry([_type("appeals", appeals_table, ("hearings",))], root="appeals")

    def test_unknown_root_is_rejected(self) -> None:
        with pytest.raises(RegistryValidationError, match="root type 'claims'"):
            TypeRegistry([_type("appeals", appeals_table)], root="claims")

    def test_association_field_must_be_a_column(self) -> None:
        with pytest.raises(RegistryValidationError, match="'no_such_id' is not a column"):
            TypeRegistry(
                [_type("appeals", appeals_table), _type("tasks", tasks_table, associations=(Association("no_such_id", target="appeals"),))],
                root="appeals",
            )

    def test_association_target_must_be_declared(self) -> None:
        with pytest.raises(RegistryValidationError, match="undeclared type 'users'"):
            TypeRegistry(
                [_type("appeals", appeals_table), _type("tasks", tasks_table, associations=(Association("assigned_by_id", target="users"),))],
                root="appeals",
            )

    def test_duplicate_type_is_rejected(self) -> None:
        with pytest.raises(RegistryValidationError, match="declared twice"):
            TypeRegistry([_type("appeals", appeals_table), _type("appeals", appeals_table)], root="appeals")

    def test_reuse_requires_natural_key(self) -> None:
        with pytest.raises(RegistryValidationError, match="natural_key"):
            _type("users", users_table, reuse_existing=True)

    def test_dependency_graph_edges(self) -> None:
        registry = TypeRegistry(
            [_type("appeals", appeals_table), _type("veterans", veterans_table, ("appeals",))],
            root="appeals",
        )

        assert list(registry.dependency_graph().edges) == [("appeals", "veterans")]

    def test_get_unknown_type(self) -> None:
        registry = TypeRegistry([_type("appeals", appeals_table)], root="appeals")

        with pytest.raises(KeyError, match="Unknown entity type 'claims'"):
            registry.get("claims")


class TestSanitizeField:
    def test_literal_matches_exact_name(self) -> None:
        field = SanitizeField("notes")

        assert field.matches("notes")
        assert not field.matches("notes_2")

    def test_pattern_uses_search(self) -> None:
        field = SanitizeField(re.compile(r"_(notes|text|description)"))

        assert field.matches("unidentified_issue_text")
        assert field.matches("nonrating_issue_description")
        assert not field.matches("notes")

    def test_domain_defaults_to_field_name(self) -> None:
        assert SanitizeField("ssn").domain_for("ssn") == "ssn"
        assert SanitizeField("veteran_file_number", domain="file_number").domain_for("veteran_file_number") == "file_number"


class TestValidationExemption:
    def test_conditional_exemption(self) -> None:
        exemption = ValidationExemption("assigned_to_id", "reason", when=lambda r: r["assigned_to_type"] == "Organization")

        assert exemption.applies("assigned_to_id", {"assigned_to_type": "Organization"})
        assert not exemption.applies("assigned_to_id", {"assigned_to_type": "User"})
        assert not exemption.applies("parent_id", {"assigned_to_type": "Organization"})


class TestAppealsRegistry:
    """The declared appeals registry and its derived import configuration."""

    def test_declaration_order(self, registry: TypeRegistry) -> None:
        assert registry.names == [
            "appeals",
            "veterans",
            "intakes",
            "claimants",
            "tasks",
            "task_timers",
            "request_issues",
            "decision_issues",
            "request_decision_issues",
            "cavc_remands",
            "hearings",
            "hearing_days",
            "virtual_hearings",
            "hearing_task_associations",
            "users",
            "organizations",
            "organizations_users",
            "people",
        ]

    def test_policies(self, registry: TypeRegistry) -> None:
        assert registry.id_mapping_types == ["appeals", "veterans", "users", "organizations", "people"]
        assert registry.reuse_record_types == ["appeals", "veterans", "users", "organizations", "organizations_users", "people"]
        assert registry.raw_creation_types == ["tasks", "cavc_remands", "hearings"]
        assert registry.get("tasks").creation_mode is CreationMode.RAW

    def test_import_order_starts_with_first_types(self, registry: TypeRegistry) -> None:
        order = [t.name for t in registry.import_order()]

        assert order[:4] == ["appeals", "organizations", "users", "hearing_days"]
        assert sorted(order) == sorted(registry.names)
        assert order[4:7] == ["veterans", "intakes", "claimants"]

    def test_offset_id_fields(self, registry: TypeRegistry) -> None:
        offset = registry.offset_id_fields()

        assert offset["tasks"] == ["parent_id"]
        assert offset["cavc_remands"] == ["decision_issue_ids"]
        assert offset["hearings"] == ["hearing_day_id"]
        assert offset["request_decision_issues"] == ["decision_issue_id", "request_issue_id"]
        assert offset["appeals"] == []

    def test_reassociate_fields(self, registry: TypeRegistry) -> None:
        fields = registry.reassociate_fields()

        assert fields["type"]["tasks"] == ["appeal_id", "assigned_to_id"]
        assert fields["type"]["virtual_hearings"] == ["hearing_id"]
        assert fields["users"]["tasks"] == ["assigned_by_id", "cancelled_by_id"]
        assert fields["users"]["hearing_days"] == ["created_by_id", "judge_id", "updated_by_id"]
        assert fields["appeals"]["cavc_remands"] == ["remand_appeal_id", "source_appeal_id"]
        assert fields["organizations"]["organizations_users"] == ["organization_id"]
        assert fields["veterans"] == {}

    def test_by_model_name(self, registry: TypeRegistry) -> None:
        assert registry.by_model_name("Appeal") is registry.get("appeals")
        assert registry.by_model_name("Organization") is registry.get("organizations")
        assert registry.by_model_name("LegacyAppeal") is None

    def test_expected_differences(self, registry: TypeRegistry) -> None:
        assert registry.expected_differences() == {"users": ("display_name",)}

    def test_named_validation_exemptions(self, registry: TypeRegistry) -> None:
        assert registry.get("request_issues").is_exempt("vacols_sequence_id", {})
        assert registry.get("virtual_hearings").is_exempt("conference_id", {})
        assert registry.get("organizations_users").is_exempt("user_id", {})
        assert registry.get("tasks").is_exempt("assigned_to_id", {"assigned_to_type": "Organization"})
        assert not registry.get("tasks").is_exempt("assigned_to_id", {"assigned_to_type": "User"})

    def test_file_numbers_share_a_domain(self, registry: TypeRegistry) -> None:
        appeal_field = registry.get("appeals").sanitize_field_for("veteran_file_number")
        veteran_field = registry.get("veterans").sanitize_field_for("file_number")

        assert appeal_field is not None and veteran_field is not None
        assert appeal_field.domain_for("veteran_file_number") == veteran_field.domain_for("file_number")
