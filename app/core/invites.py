"""Invite building for people named in a note. Pure functions, no I/O."""

from typing import Optional

from app.schemas.reference_schema import PersonReferenceIn


def validate_person_reference(ref: PersonReferenceIn) -> list[str]:
    errors = []

    if not ref.name or not ref.name.strip():
        errors.append("Name is required")

    if not ref.relationship or not ref.relationship.strip():
        errors.append("Relationship is required")

    return errors


def should_create_invite(ref: PersonReferenceIn) -> bool:
    return bool(ref.phone and ref.phone.strip())


def build_invite_data(ref: PersonReferenceIn, sender_name: str) -> Optional[dict]:
    if not should_create_invite(ref):
        return None

    contact = ref.phone.strip()
    method = "email" if "@" in contact else "sms"

    return {
        "recipient_name": ref.name.strip(),
        "recipient_contact": contact,
        "method": method,
        "message": f"{sender_name} shared a memory that mentions you. Add your perspective!",
    }


def build_claim_url(base_url: str, raw_token: str) -> str:
    return f"{base_url.rstrip('/')}/claim/{raw_token}"


def build_claim_sms_message(recipient_name: str, raw_token: str, base_url: str) -> str:
    return (
        f"Hey {recipient_name}! You were mentioned in a memory in our family archive. "
        f"See the note and choose how your name appears: {build_claim_url(base_url, raw_token)}"
    )
