"""Midtrans notification signature check."""

from __future__ import annotations

import hashlib
import hmac


def compute_signature(order_id: str, status_code: str, gross_amount: str, secret_key: str) -> str:
    """SHA-512 hex digest of order_id + status_code + gross_amount + secret_key."""
    raw = f"{order_id}{status_code}{gross_amount}{secret_key}"
    return hashlib.sha512(raw.encode("utf-8")).hexdigest()


def is_valid_signature(
    order_id: str,
    status_code: str,
    gross_amount: str,
    provided_signature: str | None,
    secret_key: str,
) -> bool:
    """True iff `provided_signature` matches the expected digest.

    Fields are concatenated as the gateway sends them (no delimiters, no
    numeric reformatting of gross_amount). Hex comparison is case-insensitive
    and done on bytes, so any non-hex input simply fails to match.
    """
    if not provided_signature or not secret_key:
        return False
    expected = compute_signature(order_id, status_code, gross_amount, secret_key)
    provided = provided_signature.strip().lower().encode("utf-8")
    return hmac.compare_digest(expected.encode("ascii"), provided)
