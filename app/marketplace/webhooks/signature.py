"""
BTCPay webhook signature verification.

BTCPay signs each delivery with HMAC-SHA256 over the raw request body
using the webhook secret and sends it as:

    BTCPay-Sig: sha256=<hex digest>

The header is compared exactly as sent: the algorithm name and the
lower-case hex digest must match byte for byte.
"""

from __future__ import annotations

from core.encryption import SecretStore
from marketplace.exceptions import SignatureError

SIGNATURE_HEADER = "BTCPay-Sig"
SIGNATURE_ALGORITHM = "sha256"


def compute_signature(body: bytes, secret: str) -> str:
    """Header value BTCPay would send for body."""
    return f"{SIGNATURE_ALGORITHM}={SecretStore.hmac_sha256(body, secret)}"


def verify_signature(body: bytes, header: str | None, secret: str) -> None:
    """
    Check a signature header against the raw body.

    Raises:
        SignatureError: If the header is missing, uses another algorithm,
            or does not match
    """
    if not header:
        raise SignatureError("Missing signature")

    algorithm, _, digest = header.partition("=")
    if algorithm != SIGNATURE_ALGORITHM or not digest:
        raise SignatureError(
            "Invalid signature",
            details={"reason": "unsupported_algorithm", "algorithm": algorithm},
        )

    expected = SecretStore.hmac_sha256(body, secret)
    if not SecretStore.secure_compare(digest, expected):
        raise SignatureError("Invalid signature", details={"reason": "mismatch"})
