"""Application factory shared by the users, equipment and requests services."""
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator

from .config import get_settings
from .database import Base, engine
from .errors import setup_exception_handlers
from .logging_middleware import add_audit_middleware, configure_logging
from .rate_limit import apply_rate_limiter

settings = get_settings()


@asynccontextmanager
async def lifespan(_: FastAPI):
    if settings.run_db_migrations:
        Base.metadata.create_all(bind=engine)
    yield


def create_service_app(title: str, service_name: str) -> FastAPI:
    configure_logging()
    fastapi_app = FastAPI(title=title, version="1.0.0", lifespan=lifespan)
    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    apply_rate_limiter(fastapi_app)
    add_audit_middleware(fastapi_app, service_name)
    setup_exception_handlers(fastapi_app)
    if settings.metrics_enabled:
        Instrumentator().instrument(fastapi_app).expose(fastapi_app, include_in_schema=False)

    @fastapi_app.get("/health", tags=["health"])
    def health() -> dict[str, str]:
        return {"status": "ok", "service": service_name}

    return fastapi_app
