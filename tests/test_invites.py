from app.core.invites import (
    build_claim_sms_message,
    build_claim_url,
    build_invite_data,
    should_create_invite,
    validate_person_reference,
)
from app.schemas.reference_schema import PersonReferenceIn


def test_validate_person_reference() -> None:
    assert validate_person_reference(PersonReferenceIn(name=" ", relationship="")) == [
        "Name is required",
        "Relationship is required",
    ]
    assert validate_person_reference(PersonReferenceIn(name="Bob", relationship="cousin")) == []


def test_invite_only_with_contact() -> None:
    assert not should_create_invite(PersonReferenceIn(name="Bob", relationship="cousin"))
    assert build_invite_data(PersonReferenceIn(name="Bob", relationship="cousin", phone="  "), "Ann") is None


def test_invite_method_from_contact() -> None:
    sms = build_invite_data(PersonReferenceIn(name=" Bob ", relationship="cousin", phone="+1555"), "Ann")
    email = build_invite_data(PersonReferenceIn(name="Bob", relationship="cousin", phone="bob@example.com"), "Ann")

    assert sms["method"] == "sms"
    assert sms["recipient_name"] == "Bob"
    assert sms["message"].startswith("Ann shared a memory")
    assert email["method"] == "email"


def test_claim_url_and_message() -> None:
    assert build_claim_url("https://archive.test/", "tok") == "https://archive.test/claim/tok"

    message = build_claim_sms_message("Bob", "tok", "https://archive.test")
    assert message.startswith("Hey Bob!")
    assert message.endswith("https://archive.test/claim/tok")
