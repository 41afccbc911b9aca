from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncGenerator

import httpx
from google import genai
from sqlalchemy.exc import SQLAlchemyError

from bookshelf.core.config import Config
from bookshelf.core.errors import PersistenceError
from bookshelf.db.session import create_engine, create_session_factory, init_db
from bookshelf.services.asset_service import create_asset_store
from bookshelf.services.book_service import BookStore
from bookshelf.services.enrichment_service import EnrichmentClient
from bookshelf.services.identity_service import IdentityGate, google_token_verifier
from bookshelf.workflow import BookWorkflow


@dataclass
class Services:
    workflow: BookWorkflow
    identity: IdentityGate


@asynccontextmanager
async def create_services(config: Config) -> AsyncGenerator[Services, None]:
    """Build every platform client once and tear them down on exit.

    Only the record store is touched here. Storage credentials are resolved
    on first upload or delete and Gemini is left out without an API key, so
    read-only commands work without any cloud setup.
    """
    try:
        engine = create_engine(config.database_url, echo=config.db_echo)
    except SQLAlchemyError as e:
        raise PersistenceError(f"Invalid database URL: {e}") from e
    limits = httpx.Limits(max_connections=20, max_keepalive_connections=5, keepalive_expiry=30.0)
    timeout = httpx.Timeout(config.http_timeout, connect=10.0)

    try:
        await init_db(engine)
    except (SQLAlchemyError, OSError) as e:
        await engine.dispose()
        raise PersistenceError(f"Record store unavailable: {e}") from e

    try:
        async with httpx.AsyncClient(http2=True, limits=limits, timeout=timeout) as http_client:
            identity = IdentityGate(google_token_verifier(config.google_client_id))
            enrichment = EnrichmentClient(
                genai.Client(api_key=config.gemini_api_key) if config.gemini_api_key else None,
                http_client,
                text_model=config.gemini_model,
                tts_endpoint=config.tts_endpoint,
                tts_language=config.tts_language,
                narration_max_chars=config.narration_max_chars,
                image_endpoint=config.image_endpoint,
                image_width=config.image_width,
                image_height=config.image_height,
            )
            workflow = BookWorkflow(
                books=BookStore(create_session_factory(engine)),
                assets=create_asset_store(
                    config.gcs_bucket_name,
                    project_id=config.gcp_project_id,
                    key_path=config.google_application_credentials,
                ),
                enrichment=enrichment,
                identity=identity,
                config=config,
            )
            yield Services(workflow=workflow, identity=identity)
    finally:
        await engine.dispose()
