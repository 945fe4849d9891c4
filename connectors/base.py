"""
BaseConnector — abstract interface for the OAuth2 sign-in provider.

The service holds a single provider slot per user; ``GoogleConnector`` is
the only implementation.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List, Tuple

from utils.schemas import ProfileInfo, TokenSet


class BaseConnector(ABC):
    """Abstract base for OAuth2 connectors."""

    # ── Identity ────────────────────────────────────────────────────────
    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Slug stored on credential records, e.g. 'google'."""
        ...

    @property
    @abstractmethod
    def scopes(self) -> List[str]:
        """OAuth scopes requested at consent time."""
        ...

    # ── OAuth flow ──────────────────────────────────────────────────────

    @abstractmethod
    def get_auth_url(self, state: str) -> str:
        """
        Build the provider's OAuth2 authorization URL.

        Parameters
        ----------
        state : str
            Opaque, signed CSRF state echoed back on the callback.
        """
        ...

    @abstractmethod
    async def handle_callback(self, code: str) -> Tuple[ProfileInfo, TokenSet]:
        """
        Exchange the authorization code for tokens and read the signed-in
        identity.
        """
        ...

    def is_configured(self) -> bool:
        """True if client id / secret are present."""
        return True
