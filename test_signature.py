import base64
import hashlib
import hmac

import pytest

from app.services.signature import SignatureVerifier


def expected_signature(message: str, secret: str = "S") -> str:
    digest = hmac.new(secret.encode(), message.encode(), hashlib.sha256).digest()
    return base64.b64encode(digest).decode()


@pytest.fixture
def verifier():
    return SignatureVerifier("S")


def test_canonical_string_matches_provider_format():
    assert SignatureVerifier.canonical_string("123456", "MYU-1", "10.00", "0") == "123456MYU-110.000"


def test_known_vector_is_accepted(verifier):
    signature = expected_signature("123456MYU-110.000")

    assert verifier.sign("123456", "MYU-1", "10.00", "0") == signature
    assert verifier.verify("123456", "MYU-1", "10.00", "0", signature) is True


def test_decimal_amount_is_signed_with_two_places(verifier):
    from decimal import Decimal

    assert verifier.sign(123456, "MYU-1", Decimal("10"), 0) == expected_signature(
        "123456MYU-110.000"
    )


@pytest.mark.parametrize(
    "nonce, order_id, amount, currency",
    [
        ("123457", "MYU-1", "10.00", "0"),
        ("123456", "MYU-2", "10.00", "0"),
        ("123456", "MYU-1", "10.01", "0"),
        ("123456", "MYU-1", "10.00", "1"),
        ("123456", "MYU-1", "10.0 ", "0"),
    ],
)
def test_any_mutated_field_fails(verifier, nonce, order_id, amount, currency):
    signature = expected_signature("123456MYU-110.000")
    assert verifier.verify(nonce, order_id, amount, currency, signature) is False


def test_mutated_signature_fails(verifier):
    signature = expected_signature("123456MYU-110.000")
    flipped = ("A" if signature[0] != "A" else "B") + signature[1:]
    assert verifier.verify("123456", "MYU-1", "10.00", "0", flipped) is False


def test_wrong_secret_fails(verifier):
    signature = expected_signature("123456MYU-110.000", secret="other")
    assert verifier.verify("123456", "MYU-1", "10.00", "0", signature) is False


@pytest.mark.parametrize("missing", ["nonce", "order_id", "amount", "currency", "signature"])
def test_missing_field_is_a_failure_not_an_exception(verifier, missing):
    fields = {
        "nonce": "123456",
        "order_id": "MYU-1",
        "amount": "10.00",
        "currency": "0",
        "signature": expected_signature("123456MYU-110.000"),
    }
    fields[missing] = None
    assert verifier.verify(**fields) is False


def test_missing_secret_never_verifies():
    verifier = SignatureVerifier("")
    signature = SignatureVerifier.compute("1", "MYU-1", "10.00", "0", "")
    assert verifier.verify("1", "MYU-1", "10.00", "0", signature) is False


def test_sandbox_prefixes_only_when_enabled():
    enabled = SignatureVerifier("S", sandbox_prefixes=["TEST-", "MOCK-"], sandbox_enabled=True)
    disabled = SignatureVerifier("S", sandbox_prefixes=["TEST-", "MOCK-"], sandbox_enabled=False)

    assert enabled.is_sandbox_order("TEST-123")
    assert enabled.is_sandbox_order("MOCK-9")
    assert not enabled.is_sandbox_order("MYU-1")
    assert not enabled.is_sandbox_order(None)
    assert not disabled.is_sandbox_order("TEST-123")


def test_nonce_is_always_six_digits():
    for _ in range(200):
        nonce = SignatureVerifier.generate_nonce()
        assert 100000 <= nonce <= 999999
        assert len(str(nonce)) == 6
