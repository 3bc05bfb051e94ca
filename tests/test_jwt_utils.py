"""Tests for the token codec"""
from jose import jwt

from conftest import ACCESS_SECRET, REFRESH_SECRET
from tokenguard.utils.jwt_utils import TokenCodec, TokenError, TokenKind


def test_issue_access_claims(codec: TokenCodec, clock):
    """Access tokens carry subject, kind, email and the configured lifetime"""
    issued = codec.issue_access("usr_1", email="a@tokenguard.io")

    assert issued.claims.subject_id == "usr_1"
    assert issued.claims.kind is TokenKind.ACCESS
    assert issued.claims.email == "a@tokenguard.io"
    assert issued.claims.token_id is None
    assert int((issued.claims.expires_at - clock()).total_seconds()) == 900

    payload = jwt.get_unverified_claims(issued.token)
    assert payload["iss"] == "login-service"
    assert payload["aud"] == "client-app"


def test_refresh_tokens_have_distinct_ids(codec: TokenCodec):
    first = codec.issue_refresh("usr_1")
    second = codec.issue_refresh("usr_1")

    assert first.claims.token_id and second.claims.token_id
    assert first.claims.token_id != second.claims.token_id
    assert first.token != second.token


def test_verify_valid_token(codec: TokenCodec):
    issued = codec.issue_access("usr_1")
    result = codec.verify(issued.token, TokenKind.ACCESS)

    assert result.ok
    assert result.claims == issued.claims


def test_verify_expired_token_keeps_claims(codec: TokenCodec, clock):
    """Expired tokens report EXPIRED but still expose their verified claims"""
    issued = codec.issue_access("usr_1")
    clock.advance(seconds=901)

    result = codec.verify(issued.token, TokenKind.ACCESS)
    assert not result.ok
    assert result.error is TokenError.EXPIRED
    assert result.claims.subject_id == "usr_1"


def test_verify_token_expiring_exactly_now_is_expired(codec: TokenCodec, clock):
    issued = codec.issue_access("usr_1")
    clock.advance(seconds=900)

    assert codec.verify(issued.token, TokenKind.ACCESS).error is TokenError.EXPIRED


def test_refresh_token_as_access_is_wrong_kind(codec: TokenCodec):
    refresh = codec.issue_refresh("usr_1")

    result = codec.verify(refresh.token, TokenKind.ACCESS)
    assert result.error is TokenError.WRONG_KIND
    assert result.claims is None


def test_access_token_as_refresh_is_wrong_kind(codec: TokenCodec):
    access = codec.issue_access("usr_1")

    assert codec.verify(access.token, TokenKind.REFRESH).error is TokenError.WRONG_KIND


def test_type_claim_checked_even_with_shared_secret(clock):
    """With equal secrets the declared type still separates the kinds"""
    shared = TokenCodec("same-secret", "same-secret", clock=clock)
    refresh = shared.issue_refresh("usr_1")

    assert shared.verify(refresh.token, TokenKind.ACCESS).error is TokenError.WRONG_KIND


def test_garbage_is_malformed(codec: TokenCodec):
    for token in ["", "not-a-jwt", "a.b.c", None]:
        assert codec.verify(token, TokenKind.ACCESS).error is TokenError.MALFORMED


def test_foreign_signature_is_malformed(codec: TokenCodec, clock):
    foreign = TokenCodec("other-access", "other-refresh", clock=clock)
    token = foreign.issue_access("usr_1").token

    assert codec.verify(token, TokenKind.ACCESS).error is TokenError.MALFORMED


def test_wrong_audience_is_malformed(codec: TokenCodec, clock):
    now = int(clock().timestamp())
    token = jwt.encode(
        {"sub": "usr_1", "type": "access", "iat": now, "exp": now + 60,
         "iss": "login-service", "aud": "someone-else"},
        ACCESS_SECRET,
        algorithm="HS256",
    )

    assert codec.verify(token, TokenKind.ACCESS).error is TokenError.MALFORMED


def test_missing_type_claim_is_malformed(codec: TokenCodec, clock):
    now = int(clock().timestamp())
    token = jwt.encode(
        {"sub": "usr_1", "iat": now, "exp": now + 60, "iss": "login-service", "aud": "client-app"},
        REFRESH_SECRET,
        algorithm="HS256",
    )

    assert codec.verify(token, TokenKind.REFRESH).error is TokenError.MALFORMED


def test_peek_reads_without_verifying(codec: TokenCodec, clock):
    foreign = TokenCodec("other-access", "other-refresh", clock=clock)
    token = foreign.issue_refresh("usr_9").token

    claims = codec.peek(token)
    assert claims.subject_id == "usr_9"
    assert claims.kind is TokenKind.REFRESH
    assert codec.peek("garbage") is None
