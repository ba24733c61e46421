"""API-key authentication for the HTTP surface."""

from __future__ import annotations

import hmac
import logging
from typing import TYPE_CHECKING

from fastapi import Header

from utctime.config import ApiKey  # noqa: TC001

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Iterable

logger = logging.getLogger(__name__)


class AuthenticationError(Exception):
    """The request carried no API key, or an unknown one."""

    status_code = 401

    def __init__(self, message: str = "Invalid API key") -> None:
        self.message = message
        super().__init__(message)


class ApiKeyValidator:
    """Accepts any of a fixed set of keys; with no keys, accepts everything."""

    def __init__(self, keys: Iterable[ApiKey] = ()) -> None:
        self._keys = {key.key: key for key in keys}

    @property
    def enabled(self) -> bool:
        return bool(self._keys)

    def __len__(self) -> int:
        return len(self._keys)

    def lookup(self, candidate: str) -> ApiKey | None:
        """Return the metadata of *candidate* if it is a configured key."""
        for key, meta in self._keys.items():
            if hmac.compare_digest(key.encode(), candidate.encode()):
                return meta
        return None

    def authenticate(self, api_key_header: str | None, authorization: str | None) -> ApiKey | None:
        """Check ``X-API-Key`` or ``Authorization: Bearer``.

        Returns the matched key (``None`` when auth is disabled).

        Raises:
            AuthenticationError: When auth is enabled and no valid key is given.
        """
        if not self.enabled:
            return None

        candidate = api_key_header
        if candidate is None and authorization:
            scheme, _, token = authorization.partition(" ")
            if scheme.lower() != "bearer" or not token.strip():
                raise AuthenticationError("Invalid Authorization header format. Use 'Bearer <api_key>'")
            candidate = token.strip()
        if not candidate:
            raise AuthenticationError("Missing API key")

        meta = self.lookup(candidate)
        if meta is None:
            logger.warning("Rejected request with an unknown API key")
            raise AuthenticationError()
        return meta

    def dependency(self) -> Callable[..., Awaitable[ApiKey | None]]:
        """A FastAPI dependency enforcing this validator."""

        async def require_api_key(
            x_api_key: str | None = Header(None),
            authorization: str | None = Header(None),
        ) -> ApiKey | None:
            return self.authenticate(x_api_key, authorization)

        return require_api_key
