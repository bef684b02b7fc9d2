# tests/test_logging_setup.py

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from dayline.logging_setup import LOG_FILE_NAME, _ConsoleNoiseFilter, setup_logging


def _record(name: str, level: int) -> logging.LogRecord:
    return logging.LogRecord(name, level, __file__, 1, "msg", None, None)


@pytest.fixture()
def restore_root():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    for h in list(root.handlers):
        root.removeHandler(h)
        h.close()
    for h in handlers:
        root.addHandler(h)
    root.setLevel(level)
    logging.captureWarnings(False)


@pytest.mark.parametrize(
    "name, level, shown",
    [
        ("dayline.timeline.aggregator", logging.DEBUG, True),
        ("dayline.cli.commands", logging.INFO, True),
        ("dayline", logging.INFO, True),
        ("dayline.instances.instance_service", logging.INFO, False),
        ("dayline.instances.instance_store", logging.WARNING, True),
        ("dayline.sources.json_source", logging.DEBUG, False),
        ("dayline.sources.json_source", logging.WARNING, True),
        ("daylinefoo", logging.WARNING, False),
        ("py.warnings", logging.WARNING, False),
        ("dateutil.parser", logging.ERROR, True),
    ],
)
def test_console_filter(name: str, level: int, shown: bool) -> None:
    assert _ConsoleNoiseFilter().filter(_record(name, level)) is shown


def test_quiet_subtrees_are_configurable() -> None:
    f = _ConsoleNoiseFilter(quiet=("dayline.timeline",))

    assert f.filter(_record("dayline.instances.instance_service", logging.INFO))
    assert not f.filter(_record("dayline.timeline.aggregator", logging.INFO))


def test_setup_writes_everything_to_file(tmp_path: Path, restore_root: logging.Logger) -> None:
    log_file = setup_logging(log_dir=tmp_path / "logs", console_level=logging.WARNING)
    setup_logging(log_dir=tmp_path / "logs", console_level=logging.WARNING)

    assert log_file == tmp_path / "logs" / LOG_FILE_NAME
    assert len(restore_root.handlers) == 2

    logging.getLogger("dayline.instances.instance_store").debug("row written")
    for h in restore_root.handlers:
        h.flush()

    assert "row written" in log_file.read_text(encoding="utf-8")
