import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.config import settings
from app.core.errors import (
    AmbiguousPersonError,
    ConflictError,
    InconsistentVisibilityError,
    MentionStateError,
    NotFoundError,
    TokenInvalidError,
)
from app.database import Base, engine
from app.logging_config import configure_logging

# Import models so SQLAlchemy registers tables
from app.models import (
    contributor,
    timeline_event,
    person,
    event_reference,
    visibility_preference,
    note_mention,
    invite,
    claim_token,
)

# Routers
from app.routers import (
    notes_router,
    mentions_router,
    claim_router,
    identity_router,
    admin_router,
)

configure_logging(settings)
logger = logging.getLogger(__name__)

# -----------------------
# CREATE APP
# -----------------------
app = FastAPI(
    title=settings.PROJECT_NAME,
    description="Identity redaction, claim links and mention review for the family archive.",
    version="1.0.0",
)
logger.info("starting %s (env=%s)", settings.PROJECT_NAME, settings.ENV)

# -----------------------
# CORS (ONLY ONCE)
# -----------------------
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],   # allow all during development
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# -----------------------
# DATABASE TABLES
# -----------------------
Base.metadata.create_all(bind=engine)


# -----------------------
# DOMAIN ERRORS -> HTTP
# -----------------------
@app.exception_handler(TokenInvalidError)
def token_invalid_handler(request: Request, exc: TokenInvalidError):
    # Same answer for unknown, used and expired links
    return JSONResponse(status_code=404, content={"detail": TokenInvalidError.public_message})


@app.exception_handler(AmbiguousPersonError)
def ambiguous_person_handler(request: Request, exc: AmbiguousPersonError):
    return JSONResponse(
        status_code=409,
        content={
            "detail": "Choose an existing person or create a new one",
            "mention_text": exc.mention_text,
            "candidates": exc.candidates,
        },
    )


@app.exception_handler(ConflictError)
def conflict_handler(request: Request, exc: ConflictError):
    return JSONResponse(status_code=409, content={"detail": ConflictError.public_message})


@app.exception_handler(MentionStateError)
def mention_state_handler(request: Request, exc: MentionStateError):
    return JSONResponse(status_code=409, content={"detail": str(exc)})


@app.exception_handler(NotFoundError)
def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc) or "Not found"})


@app.exception_handler(InconsistentVisibilityError)
def inconsistent_visibility_handler(request: Request, exc: InconsistentVisibilityError):
    # Already logged at ERROR where it was raised; never echo details
    return JSONResponse(status_code=500, content={"detail": "Internal error"})


# -----------------------
# ROUTES
# -----------------------
app.include_router(notes_router.router)
app.include_router(mentions_router.router)
app.include_router(claim_router.router)
app.include_router(identity_router.router)
app.include_router(admin_router.router)


# -----------------------
# HEALTH CHECK
# -----------------------
@app.get("/")
def root():
    return {"message": "Archive identity API is running!"}
