import pytest

from app.core.errors import ConflictError
from app.core.preferences import (
    active_preference,
    clear_preference,
    list_active_preferences,
    next_version,
    set_preference,
)
from app.core.transactions import atomic, with_conflict_retry
from app.models.visibility_preference import VisibilityPreference


@pytest.fixture
def person(make_person):
    return make_person("Bob Jones")


def test_versions_increase_and_history_is_kept(db, person) -> None:
    with atomic(db):
        set_preference(db, person.id, "approved")
    with atomic(db):
        set_preference(db, person.id, "blurred", initials_only=True)

    rows = db.query(VisibilityPreference).order_by(VisibilityPreference.version).all()
    assert [(r.version, r.is_active) for r in rows] == [(1, False), (2, True)]

    current = active_preference(db, person.id)
    assert current.visibility == "blurred"
    assert current.initials_only is True
    assert next_version(db, person.id) == 3


def test_scopes_are_independent(db, person, make_contributor) -> None:
    author = make_contributor()

    with atomic(db):
        set_preference(db, person.id, "approved")
        set_preference(db, person.id, "removed", contributor_id=author.id)

    assert active_preference(db, person.id).visibility == "approved"
    assert active_preference(db, person.id, author.id).visibility == "removed"
    assert len(list_active_preferences(db, person.id)) == 2


def test_initials_only_requires_blurred(db, person) -> None:
    with atomic(db):
        pref = set_preference(db, person.id, "approved", initials_only=True)
    assert pref.initials_only is False


def test_pending_is_not_a_preference(db, person) -> None:
    with pytest.raises(ValueError):
        set_preference(db, person.id, "pending")


def test_clear_preference(db, person) -> None:
    with atomic(db):
        set_preference(db, person.id, "approved")
    with atomic(db):
        assert clear_preference(db, person.id) == 1

    assert active_preference(db, person.id) is None
    assert db.query(VisibilityPreference).count() == 1


def test_duplicate_version_is_a_conflict(db, person) -> None:
    with atomic(db):
        set_preference(db, person.id, "approved")

    with pytest.raises(ConflictError):
        with atomic(db):
            db.add(
                VisibilityPreference(
                    person_id=person.id,
                    visibility="blurred",
                    version=1,
                    is_active=True,
                    source="admin",
                )
            )

    assert active_preference(db, person.id).visibility == "approved"


def test_conflict_retry_runs_once_more(db, person) -> None:
    calls = []

    def operation():
        calls.append(1)
        if len(calls) == 1:
            raise ConflictError(ConflictError.public_message)
        return "done"

    assert with_conflict_retry(db, operation) == "done"
    assert len(calls) == 2


def test_second_conflict_surfaces(db) -> None:
    def operation():
        raise ConflictError(ConflictError.public_message)

    with pytest.raises(ConflictError):
        with_conflict_retry(db, operation)
