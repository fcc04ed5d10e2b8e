from __future__ import annotations

import logging

from app.core.config import settings
from app.core.flow_logging import flow_info

logger = logging.getLogger("tests.flow")


def test_lifecycle_traces_follow_category_switch(monkeypatch, caplog):
    monkeypatch.setattr(settings, "FLOW_LOGS_ENABLED", True)
    monkeypatch.setattr(settings, "FLOW_LOGS_LIFECYCLE_ENABLED", True)
    monkeypatch.setattr(settings, "FLOW_LOGS_LOADING_ENABLED", False)

    with caplog.at_level(logging.INFO, logger="tests.flow"):
        flow_info(logger, "sheet_locked sheet_id=%s", "SH-1", category="lifecycle")
        flow_info(logger, "loading_cell_edited sheet_id=%s", "SH-1", category="loading")

    messages = [record.getMessage() for record in caplog.records]
    assert messages == ["sheet_locked sheet_id=SH-1"]


def test_master_switch_mutes_everything(monkeypatch, caplog):
    monkeypatch.setattr(settings, "FLOW_LOGS_ENABLED", False)

    with caplog.at_level(logging.INFO, logger="tests.flow"):
        flow_info(logger, "sheet_created sheet_id=%s", "SH-2", category="lifecycle")
        flow_info(logger, "uncategorised")

    assert caplog.records == []
