"""
FastAPI application factory.

Long-lived collaborators (token counter, chat client, vault generator) are
created once in the lifespan handler and kept on `app.state`; anything
passed to `create_app` is used as-is and left for the caller to release.
"""

import logging
import time
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from ..config import Settings, get_settings
from ..llm.client import ChatClient
from ..llm.token_counter import TokenCounter
from ..llm.vault_generator import VaultGenerator
from .natural_language import router as natural_language_router
from .schemas import failure_envelope, success_envelope


logger = logging.getLogger(__name__)

QUIET_PATHS = ("/health",)


def create_app(
    settings: Optional[Settings] = None,
    token_counter: Optional[TokenCounter] = None,
    chat_client: Optional[ChatClient] = None,
    vault_generator: Optional[VaultGenerator] = None,
) -> FastAPI:
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        state = app.state
        owns_counter = state.token_counter is None
        owns_client = state.chat_client is None

        if owns_counter:
            # EncoderInitError is fatal here: the server does not start without a tokenizer
            state.token_counter = TokenCounter(model=settings.openai_model)
        if owns_client and settings.openai_api_key:
            state.chat_client = ChatClient(api_key=settings.openai_api_key, model=settings.openai_model)
        if state.vault_generator is None and state.chat_client is not None:
            state.vault_generator = VaultGenerator(
                state.chat_client,
                token_counter=state.token_counter,
                token_limit=settings.token_limit,
                token_threshold=settings.token_threshold,
            )
        if state.chat_client is None:
            logger.warning("OPENAI_API_KEY not set, natural language endpoints will fail")

        logger.info("Vault engine ready on %s (%s)", settings.network, settings.environment)
        try:
            yield
        finally:
            if owns_client and state.chat_client is not None:
                await state.chat_client.close()
            if owns_counter:
                state.token_counter.cleanup()
            logger.info("Shut down gracefully")

    app = FastAPI(
        title="Vault Engine",
        description="Natural language vault strategy API for Stellar",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.token_counter = token_counter
    app.state.chat_client = chat_client
    app.state.vault_generator = vault_generator

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        request_id = uuid.uuid4().hex[:8]
        start = time.perf_counter()
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        if request.url.path not in QUIET_PATHS:
            elapsed_ms = (time.perf_counter() - start) * 1000
            logger.info(
                "%s %s %d - %.0fms [%s]",
                request.method, request.url.path, response.status_code, elapsed_ms, request_id,
            )
        return response

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        message = "Route not found" if exc.status_code == 404 else str(exc.detail)
        return JSONResponse(status_code=exc.status_code, content=failure_envelope(message))

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError):
        errors = [{"loc": list(e.get("loc", ())), "msg": e.get("msg"), "type": e.get("type")} for e in exc.errors()]
        return JSONResponse(status_code=500, content=failure_envelope("Invalid request parameters", errors))

    @app.exception_handler(Exception)
    async def unhandled_error(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content=failure_envelope(str(exc) or "Internal server error"))

    @app.get("/health")
    async def health():
        return success_envelope({
            "status": "ok",
            "environment": settings.environment,
            "network": settings.network,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        })

    app.include_router(natural_language_router)
    return app
