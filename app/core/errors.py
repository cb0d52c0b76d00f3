"""
Domain errors for identity redaction, claims and mention promotion.

Routers keep raising HTTPException for request validation and auth;
these errors come out of app.core and are mapped to responses in
app.main.
"""


class IdentityError(Exception):
    """Base class for identity/consent failures."""


class TokenInvalidError(IdentityError):
    """
    Claim token is expired, already used, or does not exist.

    The three cases are deliberately indistinguishable to the caller.
    """

    public_message = "This link is invalid or has expired."

    def __init__(self):
        super().__init__(self.public_message)


class AmbiguousPersonError(IdentityError):
    """A promotion candidate name matches existing people; the user must choose."""

    def __init__(self, mention_text: str, candidates: list[dict]):
        self.mention_text = mention_text
        self.candidates = candidates
        super().__init__(f"{len(candidates)} existing people match this name")


class InconsistentVisibilityError(IdentityError):
    """
    An internal redaction invariant failed (e.g. a removed reference in
    projector output). Always a bug, never a user error.
    """


class ConflictError(IdentityError):
    """A concurrent write won the race for the same row."""

    public_message = "Someone else just updated this, please retry."


class MentionStateError(IdentityError):
    """The requested mention transition is not allowed from its current state."""

    def __init__(self, mention_id: str, status: str, action: str):
        self.mention_id = mention_id
        self.status = status
        self.action = action
        super().__init__(f"Cannot {action} a mention that is {status}")


class NotFoundError(IdentityError):
    """A row the operation depends on does not exist."""
