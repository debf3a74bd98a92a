# tests/test_logging_setup.py

from __future__ import annotations

import logging

from site_tasks.logging_setup import _ConsoleNoiseFilter


def _record(name: str, level: int) -> logging.LogRecord:
    return logging.LogRecord(name, level, __file__, 1, "msg", None, None)


def test_console_filter_keeps_app_logs_and_hides_store_chatter() -> None:
    f = _ConsoleNoiseFilter()
    assert f.filter(_record("site_tasks.tasks.task_service", logging.INFO))
    assert not f.filter(_record("site_tasks.tasks.task_store", logging.INFO))
    assert f.filter(_record("site_tasks.tasks.task_store", logging.WARNING))
    assert not f.filter(_record("site_tasks.directory.store", logging.DEBUG))
    assert not f.filter(_record("py.warnings", logging.WARNING))
    assert not f.filter(_record("urllib3", logging.WARNING))
    assert f.filter(_record("urllib3", logging.ERROR))
