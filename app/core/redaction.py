"""
Redaction projector: raw reference rows -> what one viewer may see.

project_references is the only place a RawReference becomes a
RedactedReference. It performs no I/O and no writes; the same rows and
viewer always give the same output.
"""

import logging
import re
from typing import Iterable, Optional

from app.core.errors import InconsistentVisibilityError
from app.core.visibility import (
    APPROVED,
    DEFAULT_PLACEHOLDER,
    REMOVED,
    identity_state,
    initials,
    normalize_visibility,
    relationship_visible,
    render_label,
    select_preference,
    wants_initials,
)
from app.models.timeline_event import TimelineEvent
from app.schemas.reference_schema import (
    AuthorPayload,
    DevCompareOut,
    RawReference,
    RedactedReference,
    ViewerContext,
)

logger = logging.getLogger(__name__)


# ============================================================
# VIEWER
# ============================================================

def viewer_for_note(note: TimelineEvent, contributor_id: Optional[str]) -> ViewerContext:
    """
    The note's author is the only viewer who sees un-redacted labels.

    Admins, co-contributors and the named people themselves all get the
    public projection. Preferences a person set for this author apply to
    every viewer of the note.
    """
    is_owner = bool(contributor_id) and note.contributor_id == contributor_id
    return ViewerContext(
        is_owner=is_owner,
        contributor_id=contributor_id,
        author_id=note.contributor_id,
    )


# ============================================================
# PROJECTION
# ============================================================

def _project_link(ref: RawReference, viewer: ViewerContext) -> Optional[RedactedReference]:
    state = normalize_visibility(ref.visibility)
    if state == REMOVED:
        return None

    # Links are sources, not people; they carry no identity
    label = ref.display_name or ref.url or ""
    return RedactedReference(
        id=ref.id,
        type="link",
        visibility=state,
        identity_state=state,
        render_label=label,
        relationship_to_subject=None,
        note=ref.note,
        role=ref.role,
        url=ref.url,
        author_payload=(
            AuthorPayload(author_label=label, identity_state=state)
            if viewer.is_owner
            else None
        ),
    )


def _project_person(
    ref: RawReference,
    viewer: ViewerContext,
    placeholder: str,
) -> Optional[RedactedReference]:
    person = ref.person
    preference = select_preference(ref.preferences, viewer.author_id)
    state = identity_state(ref, person, preference)

    if state == REMOVED:
        return None

    label = render_label(
        state,
        person,
        ref,
        viewer.is_owner,
        initials_only=wants_initials(state, person, preference),
        placeholder=placeholder,
    )

    return RedactedReference(
        id=ref.id,
        type="person",
        visibility=state,
        identity_state=state,
        render_label=label,
        relationship_to_subject=(
            ref.relationship_to_subject if relationship_visible(state) else None
        ),
        note=ref.note,
        role=ref.role,
        url=None,
        author_payload=(
            AuthorPayload(author_label=ref.author_label, identity_state=state)
            if viewer.is_owner
            else None
        ),
    )


def project_references(
    references: Iterable[RawReference],
    viewer: ViewerContext,
    placeholder: str = DEFAULT_PLACEHOLDER,
) -> list[RedactedReference]:
    references = list(references)
    output = []

    for ref in references:
        if ref.type == "link":
            item = _project_link(ref, viewer)
        else:
            item = _project_person(ref, viewer, placeholder)

        if item is not None:
            output.append(item)

    check_projection(references, output, viewer, placeholder)
    return output


# ============================================================
# INVARIANTS
# ============================================================

def _fail(message: str):
    logger.error("redaction invariant violated: %s", message)
    raise InconsistentVisibilityError(message)


def check_projection(
    references: list[RawReference],
    output: list[RedactedReference],
    viewer: ViewerContext,
    placeholder: str = DEFAULT_PLACEHOLDER,
) -> None:
    """
    Re-verify the privacy guarantees on finished output.

    A failure here is a leak about to happen, so it is loud.
    """
    by_id = {ref.id: ref for ref in references}

    for item in output:
        raw = by_id.get(item.id)
        if raw is None:
            _fail(f"reference {item.id} in output but not in input")

        if item.identity_state == REMOVED:
            _fail(f"removed reference {item.id} in output")

        if item.type == "person":
            if item.relationship_to_subject is not None and item.identity_state != APPROVED:
                _fail(f"relationship shown for {item.identity_state} reference {item.id}")

        if viewer.is_owner:
            if item.author_payload is None:
                _fail(f"owner output for {item.id} lacks author payload")
            if item.render_label != item.author_payload.author_label:
                _fail(f"owner label for {item.id} differs from author label")
        else:
            if item.author_payload is not None:
                _fail(f"author payload for {item.id} in public output")
            if item.type == "person" and item.identity_state != APPROVED:
                allowed = {placeholder, initials(raw.author_label)}
                if raw.person is not None:
                    allowed.add(initials(raw.person.canonical_name))
                if item.render_label not in allowed:
                    _fail(f"public label for {item.id} is neither placeholder nor initials")


# ============================================================
# DEV COMPARE
# ============================================================

def compare_projections(
    references: Iterable[RawReference],
    author_id: Optional[str],
    placeholder: str = DEFAULT_PLACEHOLDER,
) -> DevCompareOut:
    """
    Owner and public projections of the same rows, side by side.

    Each side is computed independently from the raw rows, so nothing
    from the owner side can reach the public list.
    """
    references = list(references)

    owner = project_references(
        references,
        ViewerContext(is_owner=True, contributor_id=author_id, author_id=author_id),
        placeholder,
    )
    public = project_references(
        references,
        ViewerContext(is_owner=False, contributor_id=None, author_id=author_id),
        placeholder,
    )

    if any(item.author_payload is not None for item in public):
        _fail("author payload leaked into public side of dev compare")

    return DevCompareOut(owner=owner, public=public)


# ============================================================
# NOTE BODY
# ============================================================

def redact_note_body(
    content: Optional[str],
    references: Iterable[RawReference],
    viewer: ViewerContext,
    placeholder: str = DEFAULT_PLACEHOLDER,
) -> Optional[str]:
    """
    Replace names the viewer may not see inside the note body.

    The reference list hides a name; the body must not print it anyway,
    neither as the author typed it nor as the canonical name. Removed
    references are masked with the placeholder as well.
    """
    if not content or viewer.is_owner:
        return content

    replacements = {}
    kept = set()
    for ref in references:
        if ref.type != "person":
            continue

        names = {ref.author_label}
        if ref.person is not None:
            names.add(ref.person.canonical_name)
        names.discard("")
        if not names:
            continue

        preference = select_preference(ref.preferences, viewer.author_id)
        state = identity_state(ref, ref.person, preference)

        if state == APPROVED:
            kept.update(name.lower() for name in names)
            continue

        if state == REMOVED:
            replacement = placeholder
        else:
            replacement = render_label(
                state,
                ref.person,
                ref,
                False,
                initials_only=wants_initials(state, ref.person, preference),
                placeholder=placeholder,
            )

        for original in names:
            replacements[original.lower()] = replacement

    if not replacements:
        return content

    # Approved names take part in matching so a hidden "Bob" never cuts
    # into an approved "Bob Smith"
    names = set(replacements) | kept
    alternation = "|".join(re.escape(name) for name in sorted(names, key=len, reverse=True))
    pattern = re.compile(rf"(?<!\w)(?:{alternation})(?!\w)", re.IGNORECASE)

    def _swap(match):
        return replacements.get(match.group(0).lower(), match.group(0))

    return pattern.sub(_swap, content)
