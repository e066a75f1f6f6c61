import logging
from pathlib import Path

import pytest

from utils import logging_setup
from utils.logging_setup import TolerantFileHandler, default_log_file


def test_default_log_file_for_root(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(logging_setup.os, "geteuid", lambda: 0)

    assert default_log_file() == Path("/var/log/array-maintenance.log")


def test_default_log_file_for_user(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(logging_setup.os, "geteuid", lambda: 1000)
    monkeypatch.setenv("XDG_STATE_HOME", str(tmp_path))

    assert default_log_file() == tmp_path / "array-maintenance" / "array-maintenance.log"


def test_write_failure_is_only_a_warning(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    handler = TolerantFileHandler(tmp_path / "run.log")
    handler.setFormatter(logging.Formatter(logging_setup.LOG_FORMAT))
    handler.stream.close()
    record = logging.LogRecord("array_maintenance", logging.INFO, __file__, 1, "hello", None, None)

    handler.emit(record)
    handler.emit(record)

    assert capsys.readouterr().err.count("cannot write to log file") == 1
