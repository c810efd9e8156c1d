"""Student identity resolution for a newly opened editor."""

from __future__ import annotations

import logging
from typing import Optional

from session_notes.errors import PersistenceError, ValidationError
from session_notes.gateway import NotesGateway
from session_notes.models import Student

logger = logging.getLogger(__name__)


def _local_part(email: str) -> str:
    return email.split("@", 1)[0]


async def resolve_student(
    gateway: NotesGateway,
    batch: str,
    email: Optional[str] = None,
    name: Optional[str] = None,
) -> Student:
    """Build the student identity for the editor.

    Email and name supplied by the host page win.  Otherwise the profile is
    looked up by email; when the lookup fails the name falls back to the
    email's local part.
    """
    if not email:
        raise ValidationError("No student email supplied")

    if name:
        return Student(email=email, name=name, student_id=_local_part(email), batch=batch)

    try:
        profile = await gateway.get_student_profile(email)
    except PersistenceError as e:
        logger.warning("Student profile lookup failed for %s: %s", email, e)
        return Student(
            email=email,
            name=_local_part(email),
            student_id=_local_part(email),
            batch=batch,
        )

    return Student(
        email=profile.email,
        name=profile.full_name or _local_part(profile.email),
        student_id=_local_part(profile.email),
        batch=profile.batch or batch,
    )
