from datetime import timedelta

import pytest
from jose import jwt

from membership.models import Account
from membership.services.errors import (
    ExpiredTokenError,
    InvalidSignatureError,
    MalformedTokenError,
    TokenError,
)
from membership.services.tokens import JWT_ALGORITHM, TokenIssuer

from .conftest import TEST_SECRET


def _account(**overrides):
    values = {"id": 7, "email": "a@x.com", "role": "premium", "session_epoch": 3}
    values.update(overrides)
    return Account(**values)


def test_issue_and_verify_round_trip(issuer):
    claims = issuer.verify(issuer.issue(_account()))

    assert claims.account_id == 7
    assert claims.role == "premium"
    assert claims.epoch == 3
    assert claims.expires_at - claims.issued_at == int(timedelta(days=7).total_seconds())


def test_expired_token_is_rejected():
    issuer = TokenIssuer(TEST_SECRET, ttl=timedelta(seconds=-5))
    token = issuer.issue(_account())

    with pytest.raises(ExpiredTokenError):
        issuer.verify(token)


def test_token_signed_with_other_key_is_rejected(issuer):
    token = TokenIssuer("another-key").issue(_account())

    with pytest.raises(InvalidSignatureError):
        issuer.verify(token)


def test_tampered_token_fails_signature_check(issuer):
    header, payload, signature = issuer.issue(_account()).split(".")
    forged = jwt.encode(
        {"sub": "7", "role": "admin", "epoch": 3, "iat": 0, "exp": 4102444800}, "x"
    )
    forged_payload = forged.split(".")[1]

    with pytest.raises(InvalidSignatureError):
        issuer.verify(".".join([header, forged_payload, signature]))


@pytest.mark.parametrize("token", ["", "garbage", "a.b", "not.a.jwt"])
def test_malformed_tokens(issuer, token):
    with pytest.raises(MalformedTokenError):
        issuer.verify(token)


def test_token_without_epoch_is_malformed(issuer):
    token = jwt.encode(
        {"sub": "7", "role": "normal", "iat": 0, "exp": 4102444800},
        TEST_SECRET,
        algorithm=JWT_ALGORITHM,
    )

    with pytest.raises(MalformedTokenError):
        issuer.verify(token)


@pytest.mark.parametrize(
    "claims",
    [
        {"sub": 7, "role": "normal", "epoch": 0, "iat": 0, "exp": 4102444800},
        {"sub": "7", "role": "normal", "epoch": 0, "iat": "soon", "exp": 4102444800},
    ],
)
def test_signed_token_with_bad_claim_types_is_malformed(issuer, claims):
    token = jwt.encode(claims, TEST_SECRET, algorithm=JWT_ALGORITHM)

    with pytest.raises(MalformedTokenError):
        issuer.verify(token)


def test_token_errors_are_unauthorized():
    assert TokenError.status_code == 401


def test_empty_secret_is_refused():
    with pytest.raises(ValueError):
        TokenIssuer("")
