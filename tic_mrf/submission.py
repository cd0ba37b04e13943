"""
MRF submission.

Generates documents for a set of approved claims and persists them. All
documents are built before the first write, so a submission that cannot
produce documents never leaves a partial set behind.
"""

import logging
from datetime import date
from typing import Dict, List, Optional, Sequence

from .approvals import ClaimSession
from .generator import MRFGenerator
from .models import ClaimRecord, MrfFileRecord
from .storage import MRFStorage

logger = logging.getLogger(__name__)

NO_CLAIMS_MESSAGE = "No claims provided."
NO_APPROVED_MESSAGE = "No approved pricing groups to submit."
NO_DOCUMENTS_MESSAGE = "No valid claims to generate MRF files."


class SubmissionError(ValueError):
    """A submission that cannot produce any MRF file; the message is user-facing."""


def submit_claims(
    claims: Sequence[ClaimRecord],
    storage: MRFStorage,
    generator: Optional[MRFGenerator] = None,
    today: Optional[date] = None,
) -> List[MrfFileRecord]:
    """
    Generate and store MRF documents for approved claims.

    Args:
        claims: Approved, eligible claims
        storage: Destination store
        generator: Optional pre-configured generator
        today: Optional document date

    Returns:
        One file record per generated document

    Raises:
        SubmissionError: If no claims are given, no document can be built,
            or two customers share a storage key
        OSError: If writing a document or the manifest fails
    """
    if not claims:
        raise SubmissionError(NO_CLAIMS_MESSAGE)

    generator = generator or MRFGenerator()
    generated = generator.generate(claims, today=today)
    if not generated:
        raise SubmissionError(NO_DOCUMENTS_MESSAGE)

    keys: Dict[str, str] = {}
    for document in generated:
        other = keys.setdefault(document.customer_key, document.customer_id)
        if other != document.customer_id:
            raise SubmissionError(
                f"Customers {other} and {document.customer_id} share the storage key {document.customer_key}."
            )

    records = [storage.save(document) for document in generated]
    logger.info("Submitted %d claims as %d MRF files", len(claims), len(records))
    return records


def submit_session(
    session: ClaimSession,
    storage: MRFStorage,
    generator: Optional[MRFGenerator] = None,
    today: Optional[date] = None,
) -> List[MrfFileRecord]:
    """
    Submit the eligible claims of a session's approved groups.

    Raises:
        SubmissionError: If nothing is approved or no document can be built
    """
    approved = session.approved_submission_claims()
    if not approved:
        raise SubmissionError(NO_APPROVED_MESSAGE)
    return submit_claims(approved, storage, generator=generator, today=today)
