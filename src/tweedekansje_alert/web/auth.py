"""Resolve bearer credentials to owner identities."""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Optional

import requests

from ..models import Identity

logger = logging.getLogger(__name__)


def bearer_token(header: Optional[str]) -> Optional[str]:
    if not header or not header.startswith("Bearer "):
        return None
    token = header[len("Bearer "):].strip()
    return token or None


class IdentityProvider(ABC):
    @abstractmethod
    def resolve(self, token: str) -> Optional[Identity]:
        """Return the identity behind ``token`` or ``None`` when it is invalid."""


class StaticIdentityProvider(IdentityProvider):
    """Fixed token table, for development and tests."""

    def __init__(self, identities: Mapping[str, Identity]) -> None:
        self._identities = dict(identities)

    def resolve(self, token: str) -> Optional[Identity]:
        return self._identities.get(token)


class SupabaseIdentityProvider(IdentityProvider):
    """Validates access tokens against the Supabase auth API."""

    def __init__(self, base_url: str, anon_key: str, timeout: int = 10) -> None:
        self._base_url = base_url.rstrip("/")
        self._anon_key = anon_key
        self._timeout = timeout

    def resolve(self, token: str) -> Optional[Identity]:
        try:
            response = requests.get(
                f"{self._base_url}/auth/v1/user",
                headers={"apikey": self._anon_key, "Authorization": f"Bearer {token}"},
                timeout=self._timeout,
            )
            if response.status_code in (401, 403):
                return None
            response.raise_for_status()
            payload = response.json()
        except (requests.RequestException, ValueError) as exc:
            logger.warning("Identity lookup failed: %s", exc)
            return None

        if not isinstance(payload, Mapping) or not payload.get("email") or not payload.get("id"):
            return None
        return Identity(
            user_id=str(payload["id"]),
            email=str(payload["email"]),
            verified=bool(payload.get("email_confirmed_at")),
        )
