import pytest

from symbol_isolation.core.exceptions import PipelineStageError, PipelineTimeoutError
from symbol_isolation.core.logging import LogContext, stage_var, symbol_id_var, with_logging


def test_log_context_sets_and_resets():
    with LogContext(symbol_id="cherry", stage="edges") as ctx:
        assert symbol_id_var.get() == "cherry"
        assert stage_var.get() == "edges"
        ctx.set_stage("mask")
        assert stage_var.get() == "mask"

    assert symbol_id_var.get() is None
    assert stage_var.get() is None


def test_exceptions_pick_up_log_context():
    with LogContext(symbol_id="bell", stage="cleanup"):
        error = PipelineTimeoutError(2.5)

    payload = error.to_dict()
    assert payload["symbol_id"] == "bell"
    assert payload["stage"] == "cleanup"
    assert payload["error_type"] == "PipelineTimeoutError"
    assert payload["details"] == {"timeout_seconds": 2.5}


def test_with_logging_sets_stage_and_propagates():
    @with_logging("halo_removal")
    def failing():
        assert stage_var.get() == "halo_removal"
        raise PipelineStageError("boom", stage="halo_removal")

    with pytest.raises(PipelineStageError):
        failing()

    assert stage_var.get() is None
