"""
Visibility policy for people named in notes.

Everything here is a pure function of already-fetched rows. Precedence
for the identity state of a reference:

    1. reference removed, or person removed      -> removed
    2. the person's own preference                -> that value
       (scoped to the note's author beats global;
        highest version wins within a scope)
    3. the reference's stored visibility
    4. the person's default visibility, else pending

Owners see what they typed. Everyone else sees the canonical name only
when the state is approved, and a placeholder otherwise.
"""

from typing import Iterable, Optional

from app.core.errors import InconsistentVisibilityError
from app.schemas.reference_schema import RawPerson, RawPreference, RawReference

PENDING = "pending"
APPROVED = "approved"
BLURRED = "blurred"
REMOVED = "removed"

VISIBILITY_STATES = frozenset({PENDING, APPROVED, BLURRED, REMOVED})

# Values a person may choose for themselves (pending is "no choice")
PREFERENCE_STATES = frozenset({APPROVED, BLURRED, REMOVED})

DEFAULT_PLACEHOLDER = "someone"

# Higher = more private
PRIVACY_RANK = {
    APPROVED: 0,
    BLURRED: 1,
    PENDING: 1,
    REMOVED: 2,
}


def normalize_visibility(value: Optional[str]) -> str:
    """Unknown or empty values mean "no signal" (pending)."""
    if not value:
        return PENDING
    value = value.strip().lower()
    if value == "anonymized":
        # rows written before anonymized and blurred were merged
        return BLURRED
    return value if value in VISIBILITY_STATES else PENDING


def is_more_private_or_equal(candidate: str, base: str) -> bool:
    return PRIVACY_RANK[normalize_visibility(candidate)] >= PRIVACY_RANK[normalize_visibility(base)]


def select_preference(
    preferences: Iterable[RawPreference],
    contributor_id: Optional[str] = None,
) -> Optional[RawPreference]:
    """
    Pick the preference that applies for a viewer.

    Only active rows with a real choice count. A row scoped to the given
    contributor (the note's author) beats the global row; inside a scope
    the highest version is the most recent write.
    """
    scoped: Optional[RawPreference] = None
    global_: Optional[RawPreference] = None

    for pref in preferences:
        if not pref.is_active:
            continue
        if normalize_visibility(pref.visibility) == PENDING:
            continue

        if pref.contributor_id is None:
            if global_ is None or pref.version > global_.version:
                global_ = pref
        elif contributor_id is not None and pref.contributor_id == contributor_id:
            if scoped is None or pref.version > scoped.version:
                scoped = pref

    return scoped or global_


def identity_state(
    reference: RawReference,
    person: Optional[RawPerson] = None,
    preference: Optional[RawPreference] = None,
) -> str:
    if person is None:
        person = reference.person

    ref_visibility = normalize_visibility(reference.visibility)

    # 1. removed is terminal wherever it is set on the row or the person
    if ref_visibility == REMOVED:
        return REMOVED
    if person is not None and normalize_visibility(person.visibility) == REMOVED:
        return REMOVED

    # 2. the person's own instruction
    if preference is not None:
        pref_visibility = normalize_visibility(preference.visibility)
        if pref_visibility != PENDING:
            return pref_visibility

    # 3. what was stored on the reference
    if reference.visibility:
        return ref_visibility

    # 4. the person's default, else no signal
    if person is not None:
        return normalize_visibility(person.visibility)
    return PENDING


def initials(name: str) -> str:
    """Bob Jones -> B.J. and Bob -> B."""
    parts = [part for part in name.split() if part]
    if not parts:
        return ""
    if len(parts) == 1:
        return f"{parts[0][0].upper()}."
    return f"{parts[0][0].upper()}.{parts[-1][0].upper()}."


def render_label(
    state: str,
    person: Optional[RawPerson],
    reference: RawReference,
    viewer_is_owner: bool,
    initials_only: bool = False,
    placeholder: str = DEFAULT_PLACEHOLDER,
) -> str:
    """
    The string a viewer is allowed to see for one reference.

    Never falls back to a real name when the state denies it.
    """
    if state == REMOVED:
        raise InconsistentVisibilityError(
            f"render_label called for removed reference {reference.id}"
        )

    # The single bypass: the author already knows who they meant
    if viewer_is_owner:
        return reference.author_label

    if state == APPROVED:
        if person is not None and person.canonical_name:
            return person.canonical_name
        return reference.author_label or placeholder

    if state == BLURRED and initials_only:
        source = person.canonical_name if person is not None else reference.author_label
        return initials(source or "") or placeholder

    return placeholder


def relationship_visible(state: str) -> bool:
    """Relationship text could single someone out, so only approved shows it."""
    return state == APPROVED


def wants_initials(
    state: str,
    person: Optional[RawPerson],
    preference: Optional[RawPreference],
) -> bool:
    """Whether a blurred identity should render as initials."""
    if state != BLURRED:
        return False
    if preference is not None and normalize_visibility(preference.visibility) == BLURRED:
        return preference.initials_only
    return bool(person is not None and person.initials_only)
