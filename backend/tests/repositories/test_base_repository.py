from types import SimpleNamespace

from sqlalchemy.exc import IntegrityError, OperationalError

from tutorbook.core.constants import SESSION_OVERLAP_CONSTRAINT
from tutorbook.repositories.base_repository import constraint_name_from, is_deadlock
from tutorbook.repositories.factory import RepositoryFactory


class _PgError(Exception):
    def __init__(self, message, constraint_name=None, pgcode=None):
        super().__init__(message)
        self.diag = SimpleNamespace(constraint_name=constraint_name)
        self.pgcode = pgcode


def test_constraint_name_prefers_driver_diagnostics():
    exc = IntegrityError("INSERT ...", {}, _PgError("conflicting key value", constraint_name="uq_thing"))

    assert constraint_name_from(exc, known=(SESSION_OVERLAP_CONSTRAINT,)) == "uq_thing"


def test_constraint_name_falls_back_to_message_text():
    exc = IntegrityError("INSERT ...", {}, Exception(SESSION_OVERLAP_CONSTRAINT))

    assert constraint_name_from(exc, known=(SESSION_OVERLAP_CONSTRAINT,)) == SESSION_OVERLAP_CONSTRAINT
    assert constraint_name_from(exc) is None


def test_deadlock_detection_by_sqlstate_and_message():
    assert is_deadlock(OperationalError("UPDATE ...", {}, _PgError("boom", pgcode="40P01"))) is True
    assert is_deadlock(OperationalError("UPDATE ...", {}, Exception("deadlock detected"))) is True
    assert is_deadlock(OperationalError("UPDATE ...", {}, Exception("database is locked"))) is False


def test_count_and_dialect_name(db, make_tutor):
    make_tutor(max_weekly_sessions=3)
    make_tutor(max_weekly_sessions=3)
    make_tutor(max_weekly_sessions=None)
    repo = RepositoryFactory.create_tutor_repository(db)

    assert repo.count(max_weekly_sessions=3) == 2
    assert repo.dialect_name == "sqlite"
