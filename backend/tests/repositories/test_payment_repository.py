import pytest

from tests.helpers import MONDAY, utc
from tutorbook.repositories.factory import RepositoryFactory


@pytest.fixture
def repo(db):
    return RepositoryFactory.create_payment_repository(db)


@pytest.fixture
def session_row(tutor, insert_session):
    return insert_session(tutor.id, utc(MONDAY, 9), utc(MONDAY, 10))


def _record(repo, session_id, intent_id, status="requires_payment_method", attempt=1):
    return repo.record_intent(
        session_id=session_id,
        provider_intent_id=intent_id,
        amount_cents=4500,
        currency="usd",
        status=status,
        idempotency_key=f"session:{session_id}:attempt:{attempt}",
    )


def test_latest_intent_wins(db, repo, session_row):
    first = _record(repo, session_row.id, "pi_1", status="canceled")
    first.created_at = utc(MONDAY, 8)
    latest = _record(repo, session_row.id, "pi_2", attempt=2)
    db.commit()

    assert repo.get_latest_for_session(session_row.id).id == latest.id
    assert repo.get_pending_for_session(session_row.id).provider_intent_id == "pi_2"


def test_settled_intent_is_not_pending(db, repo, session_row):
    record = _record(repo, session_row.id, "pi_1")
    repo.update_status(record, "succeeded")
    db.commit()

    assert record.updated_at is not None
    assert repo.get_pending_for_session(session_row.id) is None


def test_no_intent_for_session(repo, session_row):
    assert repo.get_latest_for_session(session_row.id) is None
    assert repo.get_pending_for_session(session_row.id) is None
