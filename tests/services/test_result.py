"""Tests for ServiceResult and ServiceError."""

import json

import pytest

from assocsync.services.result import ServiceError, ServiceResult


class TestServiceResult:
    def test_success_construction(self) -> None:
        result = ServiceResult(ok=True, op="watch", data={"count": 2})
        assert result.ok is True
        assert result.op == "watch"
        assert result.data == {"count": 2}
        assert result.warnings == []
        assert result.error is None
        assert result.meta is None

    def test_error_construction(self) -> None:
        error = ServiceError(code="UNKNOWN_DOMAIN", message="Unknown domain: nope")
        result = ServiceResult(ok=False, op="watch", error=error)
        assert result.ok is False
        assert result.error is not None
        assert result.error.code == "UNKNOWN_DOMAIN"
        assert result.error.detail == {}

    def test_json_serialization(self) -> None:
        result = ServiceResult(
            ok=True,
            op="status",
            data={"connection_status": "online"},
            meta={"duration_ms": 42},
        )
        parsed = json.loads(result.model_dump_json())
        assert parsed["data"]["connection_status"] == "online"
        assert parsed["meta"]["duration_ms"] == 42

    def test_frozen(self) -> None:
        result = ServiceResult(ok=True, op="watch")
        with pytest.raises(Exception):
            result.ok = False  # type: ignore[misc]
