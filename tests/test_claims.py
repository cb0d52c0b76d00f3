from datetime import timedelta

import pytest

from app.core.claims import (
    consume_claim_token,
    hash_token,
    issue_claim_token,
    match_reference_by_name,
    preview_claim,
    send_claim_invites,
)
from app.core.errors import TokenInvalidError
from app.core.redaction import project_references, viewer_for_note
from app.core.references import load_raw_references
from app.models.claim_token import ClaimToken
from app.models.person import Person
from app.models.visibility_preference import VisibilityPreference
from app.utils.clock import utcnow


@pytest.fixture
def setup(db, make_contributor, make_note, make_person, make_reference, make_invite):
    author = make_contributor("Ann Author", user_id="user-ann")
    note = make_note(author, body="Bob Jones fixed the boat.")
    person = make_person("Bob Jones", visibility="pending", created_by=author.id)
    reference = make_reference(note, person, visibility="pending", relationship="cousin")
    invite = make_invite(note, recipient_name="Bob Jones")
    return author, note, person, reference, invite


def _issue(db, invite, **kwargs):
    kwargs.setdefault("ttl_days", 7)
    claim, raw = issue_claim_token(db, invite, **kwargs)
    db.commit()
    return claim, raw


def _public_view(db, note):
    return project_references(load_raw_references(db, note.id), viewer_for_note(note, None))


def test_only_hash_is_stored(db, setup) -> None:
    _, _, _, _, invite = setup
    claim, raw = _issue(db, invite)

    assert claim.token_hash == hash_token(raw)
    assert raw not in {claim.token_hash, claim.recipient_name, claim.recipient_phone}
    assert len(raw) >= 43


def test_expires_at_is_absolute(db, setup) -> None:
    _, _, _, _, invite = setup
    now = utcnow()
    claim, _ = _issue(db, invite, now=now, ttl_days=7)

    assert claim.expires_at == now + timedelta(days=7)


def test_claim_full_name_makes_reference_public(db, setup) -> None:
    _, note, person, _, invite = setup

    before = _public_view(db, note)
    assert before[0].render_label == "someone"
    assert before[0].relationship_to_subject is None

    raw = _issue(db, invite)[1]
    result = consume_claim_token(db, raw, "full_name")

    assert result == {"ok": True, "visibility_applied": "approved"}

    after = _public_view(db, note)
    assert after[0].render_label == "Bob Jones"
    assert after[0].relationship_to_subject == "cousin"

    db.refresh(person)
    assert person.visibility == "approved"
    assert person.claimed is True


def test_expired_token_is_rejected_and_left_unused(db, setup) -> None:
    _, _, _, _, invite = setup
    claim, raw = _issue(db, invite, now=utcnow() - timedelta(days=8))

    with pytest.raises(TokenInvalidError):
        consume_claim_token(db, raw, "full_name")

    db.refresh(claim)
    assert claim.used_at is None
    assert db.query(VisibilityPreference).count() == 0


def test_token_is_single_use(db, setup) -> None:
    _, _, _, _, invite = setup
    _, raw = _issue(db, invite)

    consume_claim_token(db, raw, "hidden")
    prefs_after_first = db.query(VisibilityPreference).count()

    with pytest.raises(TokenInvalidError) as second:
        consume_claim_token(db, raw, "full_name")

    with pytest.raises(TokenInvalidError) as unknown:
        consume_claim_token(db, "not-a-real-token", "full_name")

    assert str(second.value) == str(unknown.value)
    assert db.query(VisibilityPreference).count() == prefs_after_first


def test_choices_map_to_visibility(db, setup, make_invite) -> None:
    _, note, person, reference, _ = setup
    expected = {
        "full_name": ("approved", False),
        "initials": ("blurred", True),
        "hidden": ("blurred", False),
        "remove": ("removed", False),
    }

    for choice, (visibility, initials_only) in expected.items():
        _, raw = _issue(db, make_invite(note, recipient_name="Bob Jones"))
        assert consume_claim_token(db, raw, choice)["visibility_applied"] == visibility

        pref = (
            db.query(VisibilityPreference)
            .filter(VisibilityPreference.is_active == True)  # noqa: E712
            .one()
        )
        assert pref.visibility == visibility
        assert pref.initials_only is initials_only
        assert pref.source == "claim"


def test_remove_drops_reference_everywhere(db, setup) -> None:
    _, note, _, _, invite = setup
    _, raw = _issue(db, invite)

    consume_claim_token(db, raw, "remove")

    assert _public_view(db, note) == []
    owner_view = project_references(
        load_raw_references(db, note.id),
        viewer_for_note(note, note.contributor_id),
    )
    assert owner_view == []


def test_by_author_scope_leaves_person_default(db, setup) -> None:
    author, note, person, _, invite = setup
    _, raw = _issue(db, invite)

    consume_claim_token(db, raw, "initials", scope="by_author")

    db.refresh(person)
    assert person.visibility == "pending"

    pref = db.query(VisibilityPreference).one()
    assert pref.contributor_id == author.id
    assert _public_view(db, note)[0].render_label == "B.J."


def test_unmatched_reference_is_an_invalid_link(db, make_contributor, make_note, make_person, make_reference, make_invite) -> None:
    author = make_contributor()
    note = make_note(author)
    make_reference(note, make_person("Ann Other"))
    make_reference(note, make_person("Carl Third"))
    invite = make_invite(note, recipient_name="Zed Nobody")

    claim, raw = _issue(db, invite)

    with pytest.raises(TokenInvalidError):
        preview_claim(db, raw)
    with pytest.raises(TokenInvalidError):
        consume_claim_token(db, raw, "full_name")

    db.refresh(claim)
    assert claim.used_at is None


def test_claimant_account_is_linked(db, setup, make_contributor) -> None:
    _, _, person, _, invite = setup
    bob_account = make_contributor("Bob", user_id="user-bob")
    _, raw = _issue(db, invite)

    consume_claim_token(db, raw, "full_name", claimant_contributor_id=bob_account.id)

    db.refresh(person)
    assert person.contributor_id == bob_account.id


def test_unlinked_reference_gets_a_person(db, make_contributor, make_note, make_reference, make_invite) -> None:
    author = make_contributor()
    note = make_note(author)
    reference = make_reference(note, None, display_name="Bob Jones")
    invite = make_invite(note, recipient_name="Bob Jones")
    _, raw = _issue(db, invite)

    consume_claim_token(db, raw, "full_name")

    db.refresh(reference)
    person = db.query(Person).filter(Person.id == reference.person_id).one()
    assert person.canonical_name == "Bob Jones"
    assert person.claimed is True


def test_preview(db, setup) -> None:
    author, note, _, _, invite = setup
    _, raw = _issue(db, invite)

    preview = preview_claim(db, raw)

    assert preview["recipient_name"] == "Bob Jones"
    assert preview["event_id"] == note.id
    assert preview["contributor_name"] == author.name

    consume_claim_token(db, raw, "hidden")
    with pytest.raises(TokenInvalidError):
        preview_claim(db, raw)


def test_match_reference_by_name(db, setup, make_person, make_reference) -> None:
    _, note, _, reference, _ = setup
    other = make_reference(note, make_person("Robert Jones Sr"))

    refs = [reference, other]
    assert match_reference_by_name(refs, "bob jones") == reference
    assert match_reference_by_name(refs, "Robert Jones") == other
    assert match_reference_by_name(refs, "Nobody") is None
    assert match_reference_by_name([reference], "Nobody") == reference


def test_send_claim_invites(db, setup, config, sms_sender, make_invite) -> None:
    _, note, person, reference, invite = setup
    email_invite = make_invite(note, contact="bob@example.com", method="email")

    result = send_claim_invites(db, [invite.id, email_invite.id, "missing"], sms_sender, config)

    assert result["sent"] == 1
    assert result["failed"] == 2
    assert [r["error"] for r in result["results"]] == [None, "Not an SMS invite", "Invalid invite"]

    to, body = sms_sender.sent[0]
    assert to == "+15555550100"
    assert "https://archive.test/claim/" in body

    claim = db.query(ClaimToken).one()
    assert claim.sms_status == "sent"
    assert claim.sms_sid == "SM1"
    assert claim.reference_id == reference.id
    assert claim.person_id == person.id

    raw = body.rsplit("/claim/", 1)[1]
    assert claim.token_hash == hash_token(raw)


def test_send_claim_invites_records_failure(db, setup, config, failing_sms_sender) -> None:
    _, _, _, _, invite = setup

    result = send_claim_invites(db, [invite.id], failing_sms_sender, config)

    assert result["failed"] == 1
    assert db.query(ClaimToken).one().sms_status == "failed"
