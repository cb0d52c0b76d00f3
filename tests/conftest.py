"""Shared test fixtures and factories."""

import os

# Must be set before app.main is imported: it creates tables on import
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SUPABASE_JWT_SECRET", "test-jwt-secret")

import pytest
from fastapi.testclient import TestClient
from jose import jwt
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.config import Settings, get_settings
from app.database import Base, get_db
from app.main import app
from app.models.contributor import Contributor
from app.models.event_reference import EventReference
from app.models.invite import Invite
from app.models.note_mention import NoteMention
from app.models.person import Person, PersonAlias
from app.models.timeline_event import TimelineEvent
from app.routers.claim_router import get_sms_sender

JWT_SECRET = "test-jwt-secret"
ADMIN_EMAIL = "admin@example.com"

# =============================================================================
# Database Fixtures
# =============================================================================


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(engine):
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSession()
    yield session
    session.close()


# =============================================================================
# Configuration Fixtures
# =============================================================================


@pytest.fixture
def config() -> Settings:
    return Settings(
        ENV="test",
        DATABASE_URL="sqlite://",
        BASE_URL="https://archive.test",
        SUPABASE_URL="https://abc123.supabase.co",
        SUPABASE_JWT_SECRET=JWT_SECRET,
        LLM_FUNCTION_SECRET="llm-secret",
        ADMIN_EMAILS=(ADMIN_EMAIL,),
        DEV_COMPARE_ENABLED=True,
        TWILIO_ACCOUNT_SID=None,
        TWILIO_AUTH_TOKEN=None,
        TWILIO_FROM_NUMBER=None,
    )


# =============================================================================
# HTTP Fixtures
# =============================================================================


class FakeSmsSender:
    """Records messages instead of calling Twilio."""

    def __init__(self, fail_for=()):
        self.sent = []
        self.fail_for = set(fail_for)

    def send(self, to, body):
        from app.core.sms import SmsResult

        if to in self.fail_for:
            return SmsResult(success=False, error="SMS provider rejected the message")
        self.sent.append((to, body))
        return SmsResult(success=True, sid=f"SM{len(self.sent)}")


@pytest.fixture
def sms_sender():
    return FakeSmsSender()


@pytest.fixture
def failing_sms_sender():
    return FakeSmsSender(fail_for={"+15555550100"})


@pytest.fixture
def client(db, config, sms_sender):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_settings] = lambda: config
    app.dependency_overrides[get_sms_sender] = lambda: sms_sender

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


def make_token(sub: str, email: str = "user@example.com") -> str:
    return jwt.encode(
        {"sub": sub, "email": email, "aud": "authenticated"},
        JWT_SECRET,
        algorithm="HS256",
    )


@pytest.fixture
def auth_headers():
    def _headers(sub: str, email: str = "user@example.com") -> dict:
        return {"Authorization": f"Bearer {make_token(sub, email)}"}

    return _headers


@pytest.fixture
def admin_headers(auth_headers):
    return auth_headers("admin-user", ADMIN_EMAIL)


# =============================================================================
# Factories
# =============================================================================


@pytest.fixture
def make_contributor(db):
    def _make(name="Ann Author", user_id=None, email=None):
        contributor = Contributor(name=name, user_id=user_id, email=email)
        db.add(contributor)
        db.commit()
        return contributor

    return _make


@pytest.fixture
def make_note(db):
    def _make(contributor, title="Summer at the lake", body=None, year=1998):
        note = TimelineEvent(
            contributor_id=contributor.id,
            type="memory",
            title=title,
            full_entry=body,
            year=year,
        )
        db.add(note)
        db.commit()
        return note

    return _make


@pytest.fixture
def make_person(db):
    def _make(name="Bob Jones", visibility="pending", created_by=None, initials_only=False):
        person = Person(
            canonical_name=name,
            visibility=visibility,
            created_by=created_by,
            initials_only=initials_only,
        )
        db.add(person)
        db.flush()
        db.add(PersonAlias(person_id=person.id, alias=name, kind="entered"))
        db.commit()
        return person

    return _make


@pytest.fixture
def make_reference(db):
    def _make(
        note,
        person=None,
        display_name=None,
        visibility="pending",
        relationship="cousin",
        role="witness",
        type="person",
        url=None,
    ):
        reference = EventReference(
            event_id=note.id,
            type=type,
            person_id=person.id if person else None,
            display_name=display_name if display_name is not None else (person.canonical_name if person else None),
            role=role,
            relationship_to_subject=relationship,
            visibility=visibility,
            url=url,
            added_by=note.contributor_id,
        )
        db.add(reference)
        db.commit()
        return reference

    return _make


@pytest.fixture
def make_invite(db):
    def _make(note, recipient_name="Bob Jones", contact="+15555550100", method="sms"):
        invite = Invite(
            event_id=note.id,
            recipient_name=recipient_name,
            recipient_contact=contact,
            method=method,
            sender_id=note.contributor_id,
        )
        db.add(invite)
        db.commit()
        return invite

    return _make


@pytest.fixture
def make_mention(db):
    def _make(note, text="Bob Jones", status="pending"):
        mention = NoteMention(
            event_id=note.id,
            mention_text=text,
            normalized_text=text.lower(),
            status=status,
            source="llm",
        )
        db.add(mention)
        db.commit()
        return mention

    return _make
