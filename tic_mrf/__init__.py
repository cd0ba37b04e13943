"""
Transparency-in-Coverage MRF Generator

Turns claim extracts into out-of-network allowed-amount machine-readable
files: claims are validated, grouped into pricing groups for review and
approval, aggregated into MRF documents and stored with a manifest.
"""

from .models import (
    ClaimRecord,
    ValidationIssue,
    MrfFile,
    GeneratedMrf,
    MrfFileRecord,
    MrfCustomerRecord,
)
from .grouper_models import GroupingMethod, PricingGroup
from .approvals import ClaimSession
from .generator import MRFGenerator, generate_mrf_files
from .storage import MRFStorage, StorageError
from .submission import SubmissionError, submit_claims, submit_session

__version__ = "1.0.0"
__all__ = [
    "ClaimRecord",
    "ValidationIssue",
    "MrfFile",
    "GeneratedMrf",
    "MrfFileRecord",
    "MrfCustomerRecord",
    "GroupingMethod",
    "PricingGroup",
    "ClaimSession",
    "MRFGenerator",
    "generate_mrf_files",
    "MRFStorage",
    "StorageError",
    "SubmissionError",
    "submit_claims",
    "submit_session",
]
