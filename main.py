"""
Classroom Credential Gateway — application entry point.
"""

from __future__ import annotations

import logging
import sys
from typing import Optional

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.middleware import register_middleware
from api.routes import router as api_router
from config.settings import Settings, config
from connectors.client_factory import ClassroomClientFactory
from connectors.encryption import CryptoEnvelope
from connectors.google import GoogleConnector
from connectors.store import SqlCredentialStore
from connectors.token_manager import CredentialVault
from database.session import create_engine, create_session_factory, init_models

logging.basicConfig(
    level=logging.DEBUG if config.debug else logging.INFO,
    format="%(asctime)s  %(levelname)-8s  %(name)s — %(message)s",
    stream=sys.stdout,
)
for _noisy in ("httpcore", "httpx", "urllib3", "googleapiclient.discovery_cache", "aiosqlite"):
    logging.getLogger(_noisy).setLevel(logging.WARNING)
logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Build the application and its collaborators.

    Fails immediately (``EncryptionKeyError``) if the encryption key is
    missing or not 32 bytes.
    """
    settings = settings or config
    envelope = CryptoEnvelope.from_base64(settings.encryption_key_base64)

    engine = create_engine(settings.database_url)
    store = SqlCredentialStore(create_session_factory(engine))
    vault = CredentialVault(store, envelope)
    connector = GoogleConnector(
        settings.google_client_id,
        settings.google_client_secret,
        settings.oauth_redirect_base,
        token_url=settings.google_token_uri,
    )
    client_factory = ClassroomClientFactory(
        vault,
        client_id=settings.google_client_id,
        client_secret=settings.google_client_secret,
        token_uri=settings.google_token_uri,
        call_timeout=settings.remote_call_timeout_seconds,
        on_rotation=vault.upsert_tokens if settings.persist_rotated_refresh_tokens else None,
    )

    app = FastAPI(
        title="Classroom Credential Gateway",
        version="1.0.0",
        description="OAuth credential vault and read-only Google Classroom aggregation.",
    )
    app.state.engine = engine
    app.state.vault = vault
    app.state.connector = connector
    app.state.client_factory = client_factory

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_middleware(app)

    # Routes
    app.include_router(api_router, prefix="/api/v1")

    @app.get("/health")
    async def health() -> dict:
        return {"ok": True}

    @app.on_event("startup")
    async def on_startup():
        await init_models(engine)
        if not connector.is_configured():
            logger.warning("Google OAuth client id/secret not set — sign-in is disabled")
        logger.info("Application ready to accept requests.")

    @app.on_event("shutdown")
    async def on_shutdown():
        await engine.dispose()

    return app


app = create_app()

if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host=config.host,
        port=config.port,
        reload=config.debug,
        log_level="debug" if config.debug else "info",
    )
