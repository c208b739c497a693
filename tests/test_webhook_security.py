import hashlib
import hmac

import pytest

from app.errors import Unauthorized
from app.webhook_security import (
    WebhookConfigurationError,
    compute_hmac_sha512,
    constant_time_compare,
    create_webhook_signature,
    verify_signature,
)

SECRET = "sk_test_abc"
BODY = b'{"event":"charge.success","data":{"id":1,"reference":"BOOK_X","amount":100}}'


def test_signature_is_hex_hmac_sha512_of_raw_body():
    expected = hmac.new(SECRET.encode(), BODY, hashlib.sha512).hexdigest()
    assert compute_hmac_sha512(SECRET, BODY) == expected
    assert create_webhook_signature(SECRET, BODY) == expected


def test_valid_signature_passes():
    verify_signature(BODY, create_webhook_signature(SECRET, BODY), SECRET)


def test_uppercase_hex_accepted():
    verify_signature(BODY, create_webhook_signature(SECRET, BODY).upper(), SECRET)


def test_tampered_body_rejected():
    signature = create_webhook_signature(SECRET, BODY)
    with pytest.raises(Unauthorized):
        verify_signature(BODY.replace(b"100", b"1"), signature, SECRET)


def test_wrong_secret_rejected():
    with pytest.raises(Unauthorized):
        verify_signature(BODY, create_webhook_signature("other", BODY), SECRET)


@pytest.mark.parametrize("signature", [None, ""])
def test_missing_signature_rejected(signature):
    with pytest.raises(Unauthorized):
        verify_signature(BODY, signature, SECRET)


def test_missing_secret_is_a_configuration_error():
    with pytest.raises(WebhookConfigurationError):
        verify_signature(BODY, "abc", None)


def test_constant_time_compare():
    assert constant_time_compare("abc", "abc")
    assert not constant_time_compare("abc", "abd")
    assert not constant_time_compare("", "")
