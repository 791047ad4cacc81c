"""
Tests for Webhook Security

Covers signature parsing and HMAC verification of webhook bodies, including
property-based checks with Hypothesis.
"""

import hashlib
import hmac

from hypothesis import given, settings, strategies as st

from auto_assign.webhook.security import (
    SUPPORTED_METHODS,
    authenticate,
    parse_signature_header,
)
from conftest import WEBHOOK_SECRET, sign

methods = st.sampled_from(sorted(SUPPORTED_METHODS))
secrets = st.text(min_size=1, max_size=64)
bodies = st.binary(max_size=2048)


def _hexhmac(method: str, secret: str, body: bytes) -> str:
    return hmac.new(secret.encode(), body, getattr(hashlib, method)).hexdigest()


class TestParseSignatureHeader:
    """Tests for splitting the signature header."""

    def test_splits_method_and_digest(self):
        assert parse_signature_header("sha256=abc123") == ("sha256", "abc123")

    def test_splits_on_first_equals_only(self):
        assert parse_signature_header("sha1=ab=cd") == ("sha1", "ab=cd")

    def test_missing_header_is_empty(self):
        assert parse_signature_header(None) == ("", "")

    def test_header_without_separator_is_empty(self):
        assert parse_signature_header("sha256") == ("", "")


class TestAuthenticateProperties:
    """Property-based tests for authenticate()."""

    @settings(max_examples=100)
    @given(method=methods, secret=secrets, body=bodies)
    def test_correct_signature_is_accepted(self, method, secret, body):
        header = f"{method}={_hexhmac(method, secret, body)}"

        assert authenticate(body, header, secret) is True

    @settings(max_examples=100)
    @given(method=methods, secret=secrets, body=bodies, data=st.data())
    def test_single_bit_flip_in_digest_is_rejected(self, method, secret, body, data):
        digest = bytearray(bytes.fromhex(_hexhmac(method, secret, body)))
        bit = data.draw(st.integers(min_value=0, max_value=len(digest) * 8 - 1))
        digest[bit // 8] ^= 1 << (bit % 8)

        assert authenticate(body, f"{method}={digest.hex()}", secret) is False

    @settings(max_examples=100)
    @given(method=methods, secret=secrets, body=bodies, data=st.data())
    def test_single_bit_flip_in_header_text_is_rejected(self, method, secret, body, data):
        digest = _hexhmac(method, secret, body)
        index = data.draw(st.integers(min_value=0, max_value=len(digest) - 1))
        bit = data.draw(st.integers(min_value=0, max_value=7))
        flipped = digest[:index] + chr(ord(digest[index]) ^ (1 << bit)) + digest[index + 1:]

        assert authenticate(body, f"{method}={flipped}", secret) is False

    @settings(max_examples=100)
    @given(secret=secrets, body=bodies)
    def test_missing_header_is_rejected(self, secret, body):
        assert authenticate(body, None, secret) is False

    @settings(max_examples=50)
    @given(method=methods, secret=secrets, other=secrets, body=bodies)
    def test_wrong_secret_is_rejected(self, method, secret, other, body):
        if secret == other:
            return
        header = f"{method}={_hexhmac(method, other, body)}"

        assert authenticate(body, header, secret) is False


class TestAuthenticateExamples:
    """Example-based tests for authenticate()."""

    body = b'{"action": "opened"}'

    def test_sha1_signature_accepted(self):
        assert authenticate(self.body, sign(self.body, method="sha1"), WEBHOOK_SECRET)

    def test_sha256_signature_accepted(self):
        assert authenticate(self.body, sign(self.body), WEBHOOK_SECRET)

    def test_empty_header_value_rejected(self):
        assert not authenticate(self.body, "", WEBHOOK_SECRET)

    def test_empty_digest_rejected(self):
        # The synthetic "sha1=" header never matches
        assert not authenticate(self.body, "sha1=", WEBHOOK_SECRET)

    def test_empty_method_rejected(self):
        digest = sign(self.body).split("=", 1)[1]
        assert not authenticate(self.body, f"={digest}", WEBHOOK_SECRET)

    def test_unsupported_method_rejected(self):
        digest = hmac.new(WEBHOOK_SECRET.encode(), self.body, hashlib.md5).hexdigest()
        assert not authenticate(self.body, f"md5={digest}", WEBHOOK_SECRET)

    def test_method_mismatch_rejected(self):
        digest = sign(self.body, method="sha1").split("=", 1)[1]
        assert not authenticate(self.body, f"sha256={digest}", WEBHOOK_SECRET)

    def test_uppercase_digest_rejected(self):
        method, digest = sign(self.body).split("=", 1)
        assert not authenticate(self.body, f"{method}={digest.upper()}", WEBHOOK_SECRET)

    def test_non_ascii_digest_rejected(self):
        assert not authenticate(self.body, "sha256=éé", WEBHOOK_SECRET)

    def test_tampered_body_rejected(self):
        header = sign(self.body)
        assert not authenticate(b'{"action": "closed"}', header, WEBHOOK_SECRET)
