"""
Tests for BTCPay webhook signature verification.
"""

import hashlib
import hmac

import pytest

from marketplace.exceptions import SignatureError
from marketplace.webhooks import compute_signature, verify_signature

SECRET = "whsec-test-secret"
BODY = b'{"type":"store.deleted","storeId":"store_abc"}'


def expected_digest(body=BODY, secret=SECRET):
    return hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()


class TestComputeSignature:
    def test_header_format(self):
        assert compute_signature(BODY, SECRET) == f"sha256={expected_digest()}"


class TestVerifySignature:
    def test_valid(self):
        verify_signature(BODY, f"sha256={expected_digest()}", SECRET)

    @pytest.mark.parametrize("header", [f"SHA256={expected_digest()}", f"sha256={expected_digest().upper()}"])
    def test_case_changes_rejected(self, header):
        """Should compare the header exactly as sent."""
        with pytest.raises(SignatureError):
            verify_signature(BODY, header, SECRET)

    def test_every_digest_byte_matters(self):
        """Should reject a digest with any single character changed."""
        digest = expected_digest()

        for position, char in enumerate(digest):
            for replacement in {char.upper(), "0" if char != "0" else "1"} - {char}:
                mutated = digest[:position] + replacement + digest[position + 1 :]
                with pytest.raises(SignatureError):
                    verify_signature(BODY, f"sha256={mutated}", SECRET)

    @pytest.mark.parametrize("header", [None, ""])
    def test_missing(self, header):
        with pytest.raises(SignatureError, match="Missing signature"):
            verify_signature(BODY, header, SECRET)

    def test_wrong_algorithm(self):
        with pytest.raises(SignatureError) as exc_info:
            verify_signature(BODY, f"sha1={expected_digest()}", SECRET)

        assert exc_info.value.details["reason"] == "unsupported_algorithm"

    def test_no_digest(self):
        with pytest.raises(SignatureError):
            verify_signature(BODY, "sha256=", SECRET)

    def test_tampered_body(self):
        """Should reject a body that differs from the signed one."""
        with pytest.raises(SignatureError) as exc_info:
            verify_signature(BODY + b" ", f"sha256={expected_digest()}", SECRET)

        assert exc_info.value.details["reason"] == "mismatch"
        assert exc_info.value.error_code == "INVALID_SIGNATURE"

    def test_wrong_secret(self):
        with pytest.raises(SignatureError):
            verify_signature(BODY, compute_signature(BODY, "another-secret"), SECRET)
