"""Medical Record Number generation.

MRNs look like ``RT-2026-048213``: a configurable prefix, the registration
year and six random digits. A candidate is checked against existing patients
and then inserted inside a savepoint; a unique-constraint violation on
insert (a concurrent registration took the same number) counts as a
collision and the loop tries again with a fresh candidate.
"""

import logging
import secrets
from collections.abc import Callable
from datetime import datetime, timezone

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.errors import MrnGenerationError, StatusGuardViolation
from app.models.patient import Patient
from app.repositories.patient import PatientRepository

logger = logging.getLogger(__name__)

MrnGenerator = Callable[[], str]


def generate_mrn(prefix: str | None = None, year: int | None = None) -> str:
    """Return a random MRN candidate from a cryptographically secure source."""
    prefix = prefix or settings.mrn_prefix
    year = year or datetime.now(timezone.utc).year
    return f"{prefix}-{year}-{secrets.randbelow(1_000_000):06d}"


async def insert_patient_with_mrn(
    db: AsyncSession,
    build_patient: Callable[[str], Patient],
    generate: MrnGenerator = generate_mrn,
    max_attempts: int | None = None,
) -> Patient:
    """Insert a new patient under the first MRN that proves unique.

    Args:
        db: Session of the registration transaction.
        build_patient: Builds the unsaved patient for a given MRN.
        generate: Candidate source, replaceable to force collisions.
        max_attempts: Retry budget, defaults to ``settings.mrn_max_attempts``.

    Returns:
        The flushed patient.

    Raises:
        MrnGenerationError: If every attempt collided.
        StatusGuardViolation: If the account was registered concurrently.
    """
    max_attempts = max_attempts or settings.mrn_max_attempts
    repo = PatientRepository(db)

    for attempt in range(1, max_attempts + 1):
        mrn = generate()
        if await repo.mrn_exists(mrn):
            logger.warning("MRN collision on %s (attempt %d/%d)", mrn, attempt, max_attempts)
            continue

        patient = build_patient(mrn)
        try:
            async with db.begin_nested():
                db.add(patient)
                await db.flush()
        except IntegrityError:
            existing = await repo.get_by_user_id(patient.user_id)
            if existing is not None:
                raise StatusGuardViolation(
                    "register_patient",
                    existing.current_status,
                    "A patient record already exists for this account",
                )
            logger.warning("MRN %s taken concurrently (attempt %d/%d)", mrn, attempt, max_attempts)
            continue

        logger.info("Assigned MRN %s after %d attempt(s)", mrn, attempt)
        return patient

    logger.error("MRN generation exhausted after %d attempts", max_attempts)
    raise MrnGenerationError("Unable to generate a unique Medical Record Number. Please try again.")
