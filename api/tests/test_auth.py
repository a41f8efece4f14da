"""Tests for trigger token verification."""

import hmac
import hashlib

import pytest
from api.src.services.auth import TriggerAuthenticator, compute_trigger_token

SECRET = b"s3cret-key"

def verify(trigger, token, secret=SECRET):
    return TriggerAuthenticator().verify("deploy", secret, trigger, token)

def flip_bit(token: str, index: int, bit: int) -> str:
    raw = bytearray(token.encode())
    raw[index] ^= 1 << bit
    return raw.decode("latin-1")

def test_compute_trigger_token_is_hmac_sha256():
    expected = hmac.new(SECRET, b"release-42", hashlib.sha256).hexdigest()
    assert compute_trigger_token(SECRET, "release-42") == expected

@pytest.mark.parametrize("trigger", ["x", "release-42", "ünïcödé", "a" * 1000])
def test_valid_token_is_accepted(trigger):
    assert verify(trigger, compute_trigger_token(SECRET, trigger)) is True

def test_github_style_prefix_is_accepted():
    token = "sha256=" + compute_trigger_token(SECRET, "push")
    assert verify("push", token) is True

def test_every_single_bit_mutation_is_rejected():
    token = compute_trigger_token(SECRET, "deploy-main")
    for index in range(len(token)):
        for bit in range(8):
            assert verify("deploy-main", flip_bit(token, index, bit)) is False

def test_token_for_other_trigger_is_rejected():
    assert verify("deploy-main", compute_trigger_token(SECRET, "deploy-dev")) is False

def test_token_with_other_secret_is_rejected():
    assert verify("x", compute_trigger_token(b"other", "x")) is False

def test_truncated_token_is_rejected():
    token = compute_trigger_token(SECRET, "x")
    assert verify("x", token[:-1]) is False

@pytest.mark.parametrize("trigger,token", [
    (None, "abc"),
    ("", "abc"),
    ("x", None),
    ("x", ""),
])
def test_missing_values_are_rejected(trigger, token):
    assert verify(trigger, token) is False

def test_empty_secret_never_verifies():
    assert verify("x", compute_trigger_token(b"", "x"), secret=b"") is False

def test_non_ascii_token_does_not_raise():
    assert verify("x", "ñ" * 64) is False
