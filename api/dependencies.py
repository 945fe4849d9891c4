"""
FastAPI dependencies (shared across routes).

Long-lived collaborators are built once in ``main.create_app`` and kept on
``app.state``; these helpers hand them to route handlers.
"""

from __future__ import annotations

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from auth.jwt import verify_token
from classroom.client import ClassroomClient
from connectors.base import BaseConnector
from connectors.client_factory import ClassroomClientFactory
from connectors.token_manager import CredentialVault

_bearer_scheme = HTTPBearer()


async def get_current_user_id(
    credentials: HTTPAuthorizationCredentials = Depends(_bearer_scheme),
) -> str:
    """
    Extract and verify the Bearer token, returning the authenticated
    ``user_id``.
    """
    return verify_token(credentials.credentials)


def get_vault(request: Request) -> CredentialVault:
    return request.app.state.vault


def get_connector(request: Request) -> BaseConnector:
    return request.app.state.connector


def get_client_factory(request: Request) -> ClassroomClientFactory:
    return request.app.state.client_factory


async def get_classroom_client(
    user_id: str = Depends(get_current_user_id),
    factory: ClassroomClientFactory = Depends(get_client_factory),
) -> ClassroomClient:
    """Raises ``CredentialsNotFoundError`` when the user must sign in again."""
    return await factory.get_authorized_client(user_id)
