"""Tests for the pending-action ledger."""

import pytest
from sqlalchemy.orm import Session

from sheetchat.db.models import PendingActionStatus
from sheetchat.errors import ConflictError, NotFoundError
from sheetchat.services.pending_action_service import PendingActionService


@pytest.fixture
def svc(db_session: Session) -> PendingActionService:
    return PendingActionService(db_session)


def _record(svc: PendingActionService, thread_id: str | None = "t1"):
    return svc.record(
        "updateCell",
        {"sheet": "Sheet1", "cell": "A1", "value": "Renamed"},
        'Update cell Sheet1!A1 to "Renamed"',
        thread_id=thread_id,
    )


class TestRecord:
    def test_records_pending_action(self, svc):
        action = _record(svc)
        assert action.status == "pending"
        assert svc.parameters_of(action) == {"sheet": "Sheet1", "cell": "A1", "value": "Renamed"}
        assert action.resolved_at is None

    def test_thread_need_not_exist(self, svc):
        assert _record(svc, thread_id="never-created").thread_id == "never-created"


class TestRequirePending:
    def test_unknown_id(self, svc):
        with pytest.raises(NotFoundError, match="Pending action 'missing' not found"):
            svc.require_pending("missing")

    @pytest.mark.parametrize(
        "status",
        [PendingActionStatus.executed, PendingActionStatus.failed, PendingActionStatus.rejected],
    )
    def test_resolved_action_conflicts(self, svc, status):
        action = _record(svc)
        svc.resolve(action, status)
        with pytest.raises(ConflictError, match=f"already {status.value}"):
            svc.require_pending(action.id)


class TestResolve:
    def test_stores_result_and_timestamp(self, svc):
        action = _record(svc)
        svc.resolve(action, PendingActionStatus.executed, {"success": True, "message": "ok"})
        data = svc.to_dict(svc.get(action.id))
        assert data["status"] == "executed"
        assert data["result"] == {"success": True, "message": "ok"}
        assert data["resolved_at"] is not None

    def test_list_for_thread_filters_by_status(self, svc):
        first = _record(svc)
        _record(svc)
        _record(svc, thread_id="other")
        svc.resolve(first, PendingActionStatus.rejected)

        assert len(svc.list_for_thread("t1")) == 2
        pending = svc.list_for_thread("t1", PendingActionStatus.pending)
        assert len(pending) == 1
        assert pending[0].id != first.id
