import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from oficina.config import settings
from oficina.database import engine
from oficina.errors import OficinaError
from oficina.routers import (
    audit,
    auth,
    expressions,
    invitations,
    petitions,
    sequences,
    topics,
    users,
)

logger = logging.getLogger("oficina")


def configure_logging() -> None:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


def create_app() -> FastAPI:
    configure_logging()
    application = FastAPI(title="Oficina Legislativa API")

    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @application.exception_handler(OficinaError)
    async def handle_domain_error(request: Request, exc: OficinaError):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.detail)
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})

    @application.exception_handler(SQLAlchemyError)
    async def handle_store_error(request: Request, exc: SQLAlchemyError):
        logger.error(
            "%s %s failed in the store",
            request.method,
            request.url.path,
            exc_info=exc,
            extra={"operation": f"{request.method} {request.url.path}"},
        )
        return JSONResponse(
            status_code=500,
            content={"error": "Error interno del servidor, intente nuevamente"},
        )

    application.include_router(auth.router)
    application.include_router(users.router)
    application.include_router(invitations.router)
    application.include_router(topics.router)
    application.include_router(expressions.router)
    application.include_router(petitions.router)
    application.include_router(sequences.router)
    application.include_router(audit.router)

    @application.get("/health")
    def health():
        try:
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return {"status": "healthy"}
        except SQLAlchemyError:
            logger.exception("Health check failed")
            return JSONResponse(status_code=503, content={"status": "unhealthy"})

    return application


app = create_app()
