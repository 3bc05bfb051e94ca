"""Revocation lookups against a remote revocation service.

Used when the issuing service does not share the ledger database and must
ask the revoking service ``GET /check-token/{token}`` instead.
"""
from datetime import datetime
from typing import Optional
from urllib.parse import quote

import httpx

from tokenguard.utils.errors import RevocationStoreError
from tokenguard.utils.logger import logger


class HTTPRevocationChecker:
    """Read-only ledger view over the check-token endpoint.

    Fails closed: if the remote service cannot answer, the lookup raises
    :class:`RevocationStoreError` rather than reporting "not revoked".
    """

    def __init__(self, base_url: str, timeout: float = 2.0, client: Optional[httpx.Client] = None):
        self.base_url = base_url.rstrip("/")
        self._client = client or httpx.Client(base_url=self.base_url, timeout=timeout)

    def is_revoked(self, token: str, now: Optional[datetime] = None) -> bool:
        # Expiry of ledger entries is judged by the remote clock; ``now`` is ignored
        path = f"/check-token/{quote(token, safe='')}"
        try:
            response = self._client.get(path)
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.error(
                f"Remote revocation check failed: {exc}",
                extra={"action": "check_token"},
            )
            raise RevocationStoreError("remote revocation check failed") from exc

        return bool(payload.get("isBlacklisted", False))

    def close(self) -> None:
        self._client.close()
