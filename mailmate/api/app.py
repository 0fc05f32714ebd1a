"""FastAPI server for MailMate multi-account mail classification"""

from __future__ import annotations

import os

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from mailmate.api.routes.emails import router as emails_router
from mailmate.api.routes.health import router as health_router
from mailmate.classification.semantic import GeminiSemanticClassifier
from mailmate.config import APP_VERSION, is_development, is_production
from mailmate.errors import AccountNotFoundError, InvalidRequestError, RequestTimeoutError
from mailmate.gmail.client import GmailMailSource
from mailmate.observability.logging import get_logger
from mailmate.observability.telemetry import counter, log_event
from mailmate.pipeline.service import MailPipeline
from mailmate.storage.accounts import InMemoryAccountStore
from mailmate.utils.error_sanitizer import GENERIC_MESSAGES, sanitize_error_message

logger = get_logger(__name__)


def build_default_pipeline() -> MailPipeline:
    """Production wiring: encrypted account store, Gmail API, Gemini classifier."""
    return MailPipeline(
        account_store=InMemoryAccountStore(),
        mail_source=GmailMailSource(),
        classifier=GeminiSemanticClassifier(),
    )


def _allowed_origins() -> list[str]:
    origins = [o.strip() for o in os.getenv("MAILMATE_ALLOWED_ORIGINS", "").split(",") if o.strip()]
    if is_development():
        origins.extend(["http://localhost:3000", "http://127.0.0.1:3000"])
    return origins


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """
        Validation error handler that does not leak validation internals.

        Side Effects:
            - Logs validation errors for debugging
            - Increments api.validation_errors counter
        """
        logger.warning("Validation error on %s: %s", request.url.path, exc.errors())
        counter("api.validation_errors")
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={
                "detail": GENERIC_MESSAGES[422],
                "error_count": len(exc.errors()),
                "invalid_fields": [str(err["loc"][-1]) for err in exc.errors()],
            },
        )

    @app.exception_handler(InvalidRequestError)
    async def invalid_request_handler(request: Request, exc: InvalidRequestError) -> JSONResponse:
        counter("api.invalid_request")
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"detail": sanitize_error_message(str(exc), 400)},
        )

    @app.exception_handler(AccountNotFoundError)
    async def account_not_found_handler(
        request: Request, exc: AccountNotFoundError
    ) -> JSONResponse:
        counter("api.account_not_found")
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={"detail": "Mail account not found"},
        )

    @app.exception_handler(RequestTimeoutError)
    async def timeout_handler(request: Request, exc: RequestTimeoutError) -> JSONResponse:
        counter("api.timeout")
        logger.warning("Request timeout on %s (%s)", request.url.path, exc.operation)
        return JSONResponse(
            status_code=status.HTTP_408_REQUEST_TIMEOUT,
            content={"detail": GENERIC_MESSAGES[408]},
        )


def create_app(pipeline: MailPipeline | None = None) -> FastAPI:
    """
    Build the API application.

    Args:
        pipeline: pre-wired pipeline (tests inject fakes); defaults to
            build_default_pipeline()

    Side Effects:
        - Logs api.startup event
    """
    app = FastAPI(title="MailMate API", version=APP_VERSION)
    app.state.pipeline = pipeline or build_default_pipeline()

    origins = _allowed_origins()
    if origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=origins,
            allow_credentials=True,
            allow_methods=["GET", "POST", "OPTIONS"],
            allow_headers=["Content-Type", "Authorization", "X-User-ID"],
        )

    _register_exception_handlers(app)
    app.include_router(health_router)
    app.include_router(emails_router)

    log_event("api.startup", service="mailmate", version=APP_VERSION, production=is_production())
    return app


def main() -> None:
    uvicorn.run(
        create_app(),
        host=os.getenv("MAILMATE_HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
    )


if __name__ == "__main__":
    main()
