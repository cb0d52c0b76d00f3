import pytest

from app.core.errors import AmbiguousPersonError, MentionStateError, NotFoundError
from app.core.mentions import (
    MAX_MENTIONS_PER_DETECTION,
    ignore,
    keep_as_context,
    promote,
    record_detected_mentions,
)
from app.core.redaction import redact_note_body, viewer_for_note
from app.core.references import load_raw_references
from app.models.event_reference import EventReference
from app.models.note_mention import NoteMention
from app.models.person import Person


@pytest.fixture
def author(make_contributor):
    return make_contributor("Ann Author", user_id="user-ann")


@pytest.fixture
def note(make_note, author):
    return make_note(author, body="Bob Jones brought the canoe.")


def test_record_detected_mentions_filters(db, note, author) -> None:
    names = [
        "Bob Jones",
        "Santa Claus",
        "Elvis Presley",
        "Valerie",
        "  ",
        "bob  jones",
        "Carla Diaz",
    ]

    created = record_detected_mentions(
        db,
        note.id,
        names,
        contributor_id=author.id,
        skip_names=["Elvis Presley"],
        subject_variants=["val", "valerie"],
    )

    assert [m.mention_text for m in created] == ["Bob Jones", "Carla Diaz"]
    assert all(m.status == "pending" for m in created)
    assert db.query(Person).count() == 0
    assert db.query(EventReference).count() == 0


def test_record_detected_mentions_skips_existing_and_caps(db, note) -> None:
    record_detected_mentions(db, note.id, ["Bob Jones"])
    assert record_detected_mentions(db, note.id, ["Bob Jones"]) == []

    many = [f"Person {i}" for i in range(30)]
    created = record_detected_mentions(db, note.id, many)
    assert len(created) == MAX_MENTIONS_PER_DETECTION


def test_ignore_creates_nothing_and_body_stays(db, note, make_mention) -> None:
    mention = make_mention(note, "Bob Jones")

    ignore(db, mention.id)

    assert db.query(NoteMention).one().status == "ignored"
    assert db.query(Person).count() == 0
    assert db.query(EventReference).count() == 0

    body = redact_note_body(
        note.full_entry,
        load_raw_references(db, note.id),
        viewer_for_note(note, None),
    )
    assert body == "Bob Jones brought the canoe."


def test_ignore_is_terminal(db, note, author, make_mention) -> None:
    mention = make_mention(note)
    ignore(db, mention.id)
    ignore(db, mention.id)

    with pytest.raises(MentionStateError):
        keep_as_context(db, mention.id, "Bob")
    with pytest.raises(MentionStateError):
        promote(db, mention.id, create_new=True, contributor_id=author.id)


def test_keep_as_context(db, note, make_mention) -> None:
    mention = make_mention(note)

    keep_as_context(db, mention.id, "the neighbor")

    row = db.query(NoteMention).one()
    assert row.status == "context"
    assert row.display_label == "the neighbor"


def test_promote_creates_person_and_reference(db, note, author, make_mention) -> None:
    mention = make_mention(note, "Bob Jones")

    result = promote(db, mention.id, contributor_id=author.id)

    assert result.created_person is True
    person = db.query(Person).one()
    assert person.canonical_name == "Bob Jones"
    assert person.source_mention_id == mention.id

    reference = db.query(EventReference).one()
    assert reference.id == result.reference_id
    assert reference.role == "related"
    assert reference.visibility == "pending"

    row = db.query(NoteMention).one()
    assert row.status == "promoted"
    assert row.promoted_person_id == person.id


def test_promote_is_idempotent(db, note, author, make_mention) -> None:
    mention = make_mention(note, "Bob Jones")

    first = promote(db, mention.id, contributor_id=author.id)
    second = promote(db, mention.id, contributor_id=author.id)

    assert (second.person_id, second.reference_id) == (first.person_id, first.reference_id)
    assert second.created_person is False
    assert db.query(Person).count() == 1
    assert db.query(EventReference).count() == 1


def test_promote_with_existing_person(db, note, author, make_person, make_mention) -> None:
    person = make_person("Robert Jones", created_by=author.id)
    mention = make_mention(note, "Bob Jones")

    result = promote(db, mention.id, person_id=person.id, contributor_id=author.id)

    assert result.person_id == person.id
    assert result.created_person is False
    assert db.query(Person).count() == 1


def test_promote_ambiguous_name_asks(db, note, author, make_person, make_mention) -> None:
    existing = make_person("Bob Jones", visibility="approved")
    mention = make_mention(note, "Bob Jones")

    with pytest.raises(AmbiguousPersonError) as exc:
        promote(db, mention.id, contributor_id=author.id)

    assert exc.value.candidates == [{"id": existing.id, "canonical_name": "Bob Jones"}]
    assert db.query(NoteMention).one().status == "pending"
    assert db.query(EventReference).count() == 0

    result = promote(db, mention.id, create_new=True, contributor_id=author.id)
    assert result.created_person is True
    assert result.person_id != existing.id


def test_private_people_of_others_are_not_candidates(db, note, author, make_contributor, make_person, make_mention) -> None:
    stranger = make_contributor("Stranger")
    make_person("Bob Jones", visibility="pending", created_by=stranger.id)
    mention = make_mention(note, "Bob Jones")

    result = promote(db, mention.id, contributor_id=author.id)

    assert result.created_person is True
    assert db.query(Person).count() == 2


def test_promote_reuses_existing_reference(db, note, author, make_person, make_reference, make_mention) -> None:
    person = make_person("Bob Jones", created_by=author.id)
    reference = make_reference(note, person)
    mention = make_mention(note, "Bob Jones")

    result = promote(db, mention.id, person_id=person.id, contributor_id=author.id)

    assert result.reference_id == reference.id
    assert db.query(EventReference).count() == 1


def test_unknown_mention(db) -> None:
    with pytest.raises(NotFoundError):
        ignore(db, "missing")
