# tests/worker/test_consistency_task.py
from datetime import timedelta
from unittest.mock import MagicMock, patch

from sqlalchemy.exc import OperationalError

from catalog.services.consistency_service import SweepReport
from catalog.worker.schedulers import get_beat_schedule
from catalog.worker.tasks.consistency import sweep_category_paths


def _mock_context(sweep_result=None, sweep_error=None):
    context = MagicMock()
    context.__enter__.return_value = context
    service = context.consistency_service.return_value
    if sweep_error is not None:
        service.sweep.side_effect = sweep_error
    else:
        service.sweep.return_value = sweep_result
    return context


def test_sweep_task_reports_success():
    context = _mock_context(sweep_result=SweepReport(checked=12))

    with patch("catalog.worker.tasks.consistency.CatalogContext", return_value=context):
        result = sweep_category_paths()

    assert result["status"] == "success"
    assert result["checked"] == 12
    assert result["repaired"] == []
    context.consistency_service.return_value.sweep.assert_called_once()


def test_sweep_task_reports_store_errors():
    error = OperationalError("SELECT", {}, Exception("connection refused"))
    context = _mock_context(sweep_error=error)

    with patch("catalog.worker.tasks.consistency.CatalogContext", return_value=context):
        result = sweep_category_paths()

    assert result["status"] == "error"
    assert "connection refused" in result["message"]


def test_beat_schedule_runs_sweep():
    schedule = get_beat_schedule()

    entry = schedule["sweep-category-paths"]
    assert entry["task"] == "consistency:sweep"
    assert isinstance(entry["schedule"], timedelta)
    assert entry["schedule"].total_seconds() > 0
