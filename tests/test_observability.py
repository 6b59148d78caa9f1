import logging
import sys
from pathlib import Path

import pytest
from pydantic import BaseModel, Field

sys.path.append(str(Path(__file__).resolve().parents[1]))

from tools.observability import instrument_tool


class _LookupInput(BaseModel):
    product_id: str = Field(min_length=1)
    limit: int = 4


def test_instrument_tool_validates_keywords() -> None:
    @instrument_tool("lookup", input_model=_LookupInput)
    def lookup(product_id: str, limit: int) -> tuple:
        return product_id, limit

    assert lookup(product_id="5", limit="2") == ("5", 2)
    assert lookup(product_id="5") == ("5", 4)


def test_instrument_tool_validation_fallback() -> None:
    @instrument_tool("lookup", input_model=_LookupInput, on_validation_error=lambda exc: {"status": "invalid"})
    def lookup(product_id: str, limit: int) -> dict:
        return {"status": "ok"}

    assert lookup(product_id="") == {"status": "invalid"}


def test_instrument_tool_logs_failures(caplog: pytest.LogCaptureFixture) -> None:
    @instrument_tool("explode")
    def explode() -> None:
        raise RuntimeError("boom")

    with caplog.at_level(logging.ERROR, logger="tools.observability"):
        with pytest.raises(RuntimeError):
            explode()

    assert any(getattr(record, "event", None) == "tool_call_failed" for record in caplog.records)
