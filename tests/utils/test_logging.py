# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Tests for the structured JSON logger.

We verify:
  - output is valid JSON
  - all mandatory fields are present (ts, level, module, msg)
  - log levels filter correctly
  - extra context fields get merged into the JSON
  - operator context (shapes, dtypes) serializes cleanly
"""

import json
import logging
from pathlib import Path

import pytest
import torch

from normcore.logging.logger import get_logger


@pytest.fixture(autouse=True)
def _reset_loggers() -> None:
    """Clear handlers between tests so the handler-stacking guard doesn't leak state."""
    yield  # type: ignore[misc]
    for name in list(logging.Logger.manager.loggerDict):
        if name.startswith("normcore.test"):
            logging.getLogger(name).handlers.clear()


class TestJsonOutput:
    def test_mandatory_fields_are_present(self, capsys: pytest.CaptureFixture[str]) -> None:
        logger = get_logger("normcore.test.fields", log_level="INFO")
        logger.info("test message")
        parsed = json.loads(capsys.readouterr().out.strip())

        assert parsed["level"] == "INFO"
        assert parsed["module"] == "normcore.test.fields"
        assert parsed["msg"] == "test message"
        assert "ts" in parsed

    def test_extra_fields_are_included(self, capsys: pytest.CaptureFixture[str]) -> None:
        logger = get_logger("normcore.test.extra", log_level="DEBUG")
        logger.info("backend_selected", extra={"backend": "parallel", "axis": 2})
        parsed = json.loads(capsys.readouterr().out.strip())

        assert parsed["backend"] == "parallel"
        assert parsed["axis"] == 2

    def test_operator_context_serializes(self, capsys: pytest.CaptureFixture[str]) -> None:
        logger = get_logger("normcore.test.context", log_level="DEBUG")
        logger.error(
            "backend_execution_failed",
            extra={"backend": "gpu", "input_shapes": [(2, 3, 4), (3, 4)], "error": "boom"},
        )
        logger.debug("precision_fallback", extra={"backend": "parallel", "dtype": torch.float16})
        failed, fallback = (json.loads(line) for line in capsys.readouterr().out.strip().splitlines())

        assert failed["input_shapes"] == [[2, 3, 4], [3, 4]]
        assert failed["level"] == "ERROR"
        assert fallback["dtype"] == "torch.float16"


class TestLogLevelFiltering:
    def test_debug_hidden_at_info_level(self, capsys: pytest.CaptureFixture[str]) -> None:
        logger = get_logger("normcore.test.level_filter", log_level="INFO")
        logger.debug("this should not appear")
        assert capsys.readouterr().out.strip() == ""

    def test_invalid_level_raises(self) -> None:
        with pytest.raises(ValueError):
            get_logger("normcore.test.bad_level", log_level="LOUD")


class TestFileOutput:
    def test_log_file_receives_json(self, tmp_path: Path) -> None:
        log_file = tmp_path / "logs" / "normcore.log"
        logger = get_logger("normcore.test.file", log_level="INFO", log_file=log_file)
        logger.info("to file")
        for handler in logger.handlers:
            handler.flush()

        lines = log_file.read_text(encoding="utf-8").strip().splitlines()
        assert json.loads(lines[-1])["msg"] == "to file"
