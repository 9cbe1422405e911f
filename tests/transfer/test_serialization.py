# tests/transfer/test_serialization.py
"""Tests for export document serialization."""

import json
from datetime import UTC, date, datetime
from typing import Any

import pytest
from conftest import CREATED

from caseport.contracts import MalformedDocumentError, RecordSet
from caseport.core.canonical import CANONICAL_VERSION, stable_hash
from caseport.transfer.registry import TypeRegistry
from caseport.transfer.serialization import FORMAT_VERSION, deserialize, serialize


@pytest.fixture
def records() -> RecordSet:
    records = RecordSet()
    records.add(
        "appeals",
        [{"id": 1, "uuid": "u-1", "veteran_file_number": "111222333", "receipt_date": date(2020, 1, 1), "created_at": CREATED}],
    )
    records.add("tasks", [{"id": 1, "type": "RootTask", "appeal_id": 1, "instructions": ["a", "b"]}, {"id": 2, "type": "HearingTask"}])
    return records


def _document(body: dict[str, Any], **metadata: Any) -> str:
    return json.dumps({"metadata": metadata, "records": body})


class TestSerialize:
    def test_metadata(self, records: RecordSet) -> None:
        exported_at = datetime(2024, 5, 1, 12, 0, tzinfo=UTC)

        document = json.loads(serialize(records, root_type="appeals", sanitized=True, exported_at=exported_at))
        metadata = document["metadata"]

        assert metadata["format_version"] == FORMAT_VERSION
        assert metadata["exported_at"] == "2024-05-01T12:00:00+00:00"
        assert metadata["sanitized"] is True
        assert metadata["root_type"] == "appeals"
        assert metadata["canonical_version"] == CANONICAL_VERSION
        assert metadata["record_counts"] == {"appeals": 1, "tasks": 2}
        assert metadata["content_hash"] == stable_hash(document["records"])

    def test_records_keep_original_ids_and_order(self, records: RecordSet) -> None:
        document = json.loads(serialize(records, root_type="appeals", sanitized=False))

        assert list(document["records"]) == ["appeals", "tasks"]
        assert [r["id"] for r in document["records"]["tasks"]] == [1, 2]

    def test_dates_are_iso_strings(self, records: RecordSet) -> None:
        appeal = json.loads(serialize(records, root_type="appeals", sanitized=False))["records"]["appeals"][0]

        assert appeal["receipt_date"] == "2020-01-01"
        assert appeal["created_at"] == "2021-03-04T10:30:00+00:00"

    def test_compact_output(self, records: RecordSet) -> None:
        assert "\n" not in serialize(records, root_type="appeals", sanitized=False, indent=None)

    def test_non_finite_numbers_are_rejected(self) -> None:
        records = RecordSet()
        records.add("tasks", [{"id": 1, "score": float("nan")}])

        with pytest.raises(ValueError, match="non-finite"):
            serialize(records, root_type="appeals", sanitized=False)


class TestDeserialize:
    def test_round_trip(self, records: RecordSet, registry: TypeRegistry) -> None:
        document = deserialize(serialize(records, root_type="appeals", sanitized=True), registry)

        assert document.sanitized is True
        assert document.records.counts() == {"appeals": 1, "tasks": 2}
        assert document.records["tasks"][0]["instructions"] == ["a", "b"]

    def test_date_columns_are_coerced(self, records: RecordSet, registry: TypeRegistry) -> None:
        appeal = deserialize(serialize(records, root_type="appeals", sanitized=True), registry).records["appeals"][0]

        assert appeal["receipt_date"] == date(2020, 1, 1)
        assert appeal["created_at"] == CREATED.replace(tzinfo=UTC)

    def test_accepts_bytes(self, records: RecordSet, registry: TypeRegistry) -> None:
        text = serialize(records, root_type="appeals", sanitized=True)

        assert deserialize(text.encode("utf-8"), registry).records.ids("appeals") == [1]

    def test_metadata_is_optional(self, registry: TypeRegistry) -> None:
        document = deserialize(json.dumps({"records": {"appeals": [{"id": 5, "uuid": "x"}]}}), registry)

        assert document.records.ids("appeals") == [5]
        assert document.sanitized is True

    @pytest.mark.parametrize(
        ("text", "message"),
        [
            ("{not json", "not valid JSON"),
            ("[1, 2]", "must be a JSON object"),
            (json.dumps({"metadata": [], "records": {}}), "'metadata' must be an object"),
            (json.dumps({"metadata": {}}), "no 'records' object"),
            (_document({}, format_version=99), "Unsupported format_version 99"),
            (_document({"claims": []}), "Unknown entity type 'claims'"),
            (_document({"appeals": {"id": 1}}), "must be a list"),
            (_document({"appeals": ["row"]}), r"appeals\[0\] is not an object"),
            (_document({"appeals": [{"uuid": "x"}]}), "no integer 'id'"),
            (_document({"appeals": [{"id": "1"}]}), "no integer 'id'"),
            (_document({"appeals": [{"id": True}]}), "no integer 'id'"),
            (_document({"appeals": [{"id": 1}, {"id": 1}]}), r"appeals\[1\] repeats id 1"),
            (_document({"appeals": [{"id": 1, "receipt_date": "yesterday"}]}), r"appeals\[0\]\.receipt_date"),
        ],
    )
    def test_malformed_documents(self, registry: TypeRegistry, text: str, message: str) -> None:
        with pytest.raises(MalformedDocumentError, match=message):
            deserialize(text, registry)

    def test_tampered_records_fail_hash_check(self, records: RecordSet, registry: TypeRegistry) -> None:
        document = json.loads(serialize(records, root_type="appeals", sanitized=True))
        document["records"]["appeals"][0]["veteran_file_number"] = "999999999"

        with pytest.raises(MalformedDocumentError, match="content_hash"):
            deserialize(json.dumps(document), registry)
