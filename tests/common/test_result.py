from __future__ import annotations

from datetime import datetime, timezone

import pytest

from storage_cos.common.result import Result
from storage_cos.domain import ObjectRecord


def test_success_envelope_flattens_payload():
    assert Result.success(key="a.txt", size=3).to_dict() == {
        "ok": True,
        "key": "a.txt",
        "size": 3,
    }


def test_failure_envelope_carries_only_error():
    result = Result.failure("Failed to delete object: AccessDenied: nope")

    assert result.to_dict() == {
        "ok": False,
        "error": "Failed to delete object: AccessDenied: nope",
    }


def test_failure_never_has_empty_message():
    assert Result.failure("").error == "Unknown error"


def test_records_are_serialized_with_wire_names():
    record = ObjectRecord(
        key="a/b.txt",
        size=10,
        last_modified=datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc),
        etag='"abc"',
    )

    payload = Result.success(files=[record]).to_dict()

    assert payload["files"] == [
        {
            "key": "a/b.txt",
            "size": 10,
            "lastModified": "2024-05-01T12:00:00+00:00",
            "etag": '"abc"',
        }
    ]


def test_payload_access():
    result = Result.success(url="https://example")

    assert result["url"] == "https://example"
    assert result.get("missing") is None
    with pytest.raises(KeyError):
        result["missing"]
