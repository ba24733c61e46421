"""Tests for API-key authentication."""

from __future__ import annotations

import pytest

from utctime.config import ApiKey
from utctime.transport.auth import ApiKeyValidator, AuthenticationError

_KEYS = (ApiKey(key="alpha-key", name="Alpha"), ApiKey(key="beta-key"))


class TestApiKeyValidator:
    def test_disabled_accepts_everything(self) -> None:
        validator = ApiKeyValidator()
        assert not validator.enabled
        assert validator.authenticate(None, None) is None
        assert validator.authenticate("anything", None) is None

    def test_header_key(self) -> None:
        validator = ApiKeyValidator(_KEYS)
        assert len(validator) == 2
        key = validator.authenticate("alpha-key", None)
        assert key is not None
        assert key.name == "Alpha"

    def test_bearer_token(self) -> None:
        key = ApiKeyValidator(_KEYS).authenticate(None, "Bearer beta-key")
        assert key == _KEYS[1]

    def test_header_wins_over_bearer(self) -> None:
        key = ApiKeyValidator(_KEYS).authenticate("alpha-key", "Bearer beta-key")
        assert key == _KEYS[0]

    @pytest.mark.parametrize("authorization", ["Basic YWxhZGRpbg==", "Bearer", "Bearer   "])
    def test_bad_authorization_format(self, authorization: str) -> None:
        with pytest.raises(AuthenticationError, match="Bearer <api_key>"):
            ApiKeyValidator(_KEYS).authenticate(None, authorization)

    def test_missing_key(self) -> None:
        with pytest.raises(AuthenticationError, match="Missing API key") as exc_info:
            ApiKeyValidator(_KEYS).authenticate(None, None)
        assert exc_info.value.status_code == 401

    def test_unknown_key(self) -> None:
        with pytest.raises(AuthenticationError, match="Invalid API key"):
            ApiKeyValidator(_KEYS).authenticate("gamma-key", None)

    def test_lookup(self) -> None:
        validator = ApiKeyValidator(_KEYS)
        assert validator.lookup("beta-key") == _KEYS[1]
        assert validator.lookup("beta") is None
