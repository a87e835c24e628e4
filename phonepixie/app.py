from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from .agent_pipeline import PhonePixieAgent, PipelineOutcome
from .catalog_store import CatalogStore, UnavailableCatalogStore
from .config import Settings, load_settings
from .errors import CatalogUnavailableError
from .gemini_client import GeminiClient, TextGenerator
from .rate_limiter import InMemoryRateLimitStore, RateLimitStore, client_key_from

BASE_DIR = Path(__file__).resolve().parent

ENV_PATH = BASE_DIR / ".env"
if ENV_PATH.exists():
    load_dotenv(ENV_PATH, override=True)

log_level_name = os.getenv("LOG_LEVEL", "INFO").upper()
log_level = getattr(logging, log_level_name, logging.INFO)
if not logging.getLogger().handlers:
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

logging.getLogger("phonepixie").setLevel(log_level)
logger = logging.getLogger("phonepixie.app")


def build_catalog(settings: Settings) -> CatalogStore:
    """Purpose: Load the catalog snapshot once at startup.
    Inputs/Outputs: Input is Settings; output is a CatalogStore.
    Side Effects / State: Reads the snapshot file and logs its version.
    Dependencies: CatalogStore.from_path.
    Failure Modes: A failed load installs UnavailableCatalogStore so catalog-backed
        requests return 500 instead of the process failing to start.
    If Removed: The app cannot serve search, compare, or details.
    Testing Notes: Point CATALOG_PATH at a missing file and expect 500 on search.
    """
    # Keep serving explain/general even when the snapshot is missing.
    try:
        return CatalogStore.from_path(settings.catalog_path)
    except CatalogUnavailableError as exc:
        logger.error("catalog unavailable path=%s error=%s", settings.catalog_path, exc)
        return UnavailableCatalogStore(str(exc))


def build_generator(settings: Settings) -> Optional[TextGenerator]:
    # No key means every generative step takes its deterministic path.
    if not settings.gemini_api_key:
        logger.warning("GEMINI_API_KEY not set; generation disabled")
        return None
    return GeminiClient(settings)


def create_app(
    settings: Optional[Settings] = None,
    generator: Optional[TextGenerator] = None,
    catalog: Optional[CatalogStore] = None,
    rate_limiter: Optional[RateLimitStore] = None,
) -> FastAPI:
    """Purpose: Build the FastAPI application and its single chat route.
    Inputs/Outputs: Optional settings, generator, catalog, and rate-limit store
        overrides (tests inject fakes); output is a FastAPI app.
    Side Effects / State: Loads the catalog and configures the Gemini SDK when not
        injected.
    Dependencies: PhonePixieAgent, InMemoryRateLimitStore, client_key_from.
    Failure Modes: Invalid numeric env values raise ValueError from load_settings.
    If Removed: No HTTP surface.
    Testing Notes: create_app(settings, generator=fake, catalog=store) with TestClient.
    """
    # Resolve collaborators, then register the route.
    settings = settings or load_settings()
    catalog = catalog if catalog is not None else build_catalog(settings)
    if generator is None:
        generator = build_generator(settings)
    rate_limiter = rate_limiter or InMemoryRateLimitStore(
        limit=settings.rate_limit,
        window_sec=settings.rate_limit_window_sec,
        ttl_sec=settings.rate_limit_ttl_sec,
    )
    agent = PhonePixieAgent(catalog=catalog, generator=generator, settings=settings, rate_limiter=rate_limiter)

    app = FastAPI(title="PhonePixie Shopping Assistant")
    app.state.agent = agent

    @app.post("/api/chat")
    async def chat(request: Request) -> JSONResponse:
        """Purpose: Handle chat requests and run the agent pipeline.
        Inputs/Outputs: Input is the raw HTTP request; output is a JSON response with
            X-RateLimit-* headers on every status.
        Side Effects / State: Counts the request against the client's window.
        Dependencies: PhonePixieAgent.handle_request in a worker thread.
        Failure Modes: Undecodable JSON is passed on as None and becomes a 400 after
            the rate-limit check.
        If Removed: Core chat functionality is unavailable.
        Testing Notes: Send a sample message and verify the response schema and headers.
        """
        # Decode leniently so the orchestrator decides every status code.
        raw = await request.body()
        try:
            payload = json.loads(raw.decode("utf-8")) if raw else None
        except (UnicodeDecodeError, json.JSONDecodeError):
            payload = None
        client_key = client_key_from(
            request.headers.get("x-forwarded-for"),
            request.client.host if request.client else None,
        )
        outcome: PipelineOutcome = await run_in_threadpool(agent.handle_request, payload, client_key)
        return JSONResponse(status_code=outcome.status_code, content=outcome.body, headers=outcome.headers())

    return app


app = create_app()
