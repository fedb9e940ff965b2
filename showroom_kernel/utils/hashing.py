"""
Draft fingerprints.

The preview an employee confirms and the draft that gets posted are matched
by fingerprint, so equal drafts must hash equally across processes.
"""

import hashlib
import json
from decimal import Decimal
from uuid import UUID


def _encode(value: object) -> str:
    # str(Decimal) keeps the exponent: 45000.00 and 45000 are different amounts
    if isinstance(value, (Decimal, UUID)):
        return str(value)
    raise TypeError(f"cannot fingerprint {type(value).__name__}")


def hash_payload(payload: dict) -> str:
    """SHA-256 hex digest of ``payload`` as sorted, whitespace-free JSON."""
    text = json.dumps(payload, sort_keys=True, separators=(",", ":"), default=_encode)
    return hashlib.sha256(text.encode("utf-8")).hexdigest()
