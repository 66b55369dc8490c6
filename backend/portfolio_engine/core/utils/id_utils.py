"""
Identifier generation for engine documents.
"""

import secrets
import string
import uuid

from .date_utils import utcnow

_REFERENCE_ALPHABET = string.ascii_uppercase + string.digits


def generate_id(prefix: str) -> str:
    """Return a prefixed random identifier, e.g. ``holding_1a2b3c4d5e6f``."""
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


def generate_reference_number() -> str:
    """
    Return a transaction reference number: ``TXN-<epoch ms>-<6 chars>``.

    Uniqueness is enforced by a unique index; collisions surface as DuplicateKeyError.
    """
    epoch_ms = int(utcnow().timestamp() * 1000)
    suffix = "".join(secrets.choice(_REFERENCE_ALPHABET) for _ in range(6))
    return f"TXN-{epoch_ms}-{suffix}"
