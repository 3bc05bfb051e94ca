"""Tests for the HTTP revocation checker"""
import httpx
import pytest

from tokenguard.services.remote_checker import HTTPRevocationChecker
from tokenguard.utils.errors import RevocationStoreError


def make_checker(handler) -> HTTPRevocationChecker:
    client = httpx.Client(transport=httpx.MockTransport(handler), base_url="http://revoker")
    return HTTPRevocationChecker("http://revoker", client=client)


def test_reports_blacklisted_tokens():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.url.path)
        return httpx.Response(200, json={"isBlacklisted": True, "blacklistedAt": "2026-01-01T00:00:00Z"})

    checker = make_checker(handler)

    assert checker.is_revoked("a.b.c") is True
    assert seen == ["/check-token/a.b.c"]


def test_reports_clear_tokens():
    checker = make_checker(lambda request: httpx.Response(200, json={"isBlacklisted": False}))

    assert checker.is_revoked("a.b.c") is False


def test_token_is_path_escaped():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.url.raw_path)
        return httpx.Response(200, json={"isBlacklisted": False})

    make_checker(handler).is_revoked("odd/token?x")

    assert seen == [b"/check-token/odd%2Ftoken%3Fx"]


@pytest.mark.parametrize("response", [
    httpx.Response(500, json={"success": False}),
    httpx.Response(200, content=b"not json"),
])
def test_bad_answers_fail_closed(response):
    checker = make_checker(lambda request: response)

    with pytest.raises(RevocationStoreError):
        checker.is_revoked("a.b.c")


def test_unreachable_service_fails_closed():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(RevocationStoreError):
        make_checker(handler).is_revoked("a.b.c")
