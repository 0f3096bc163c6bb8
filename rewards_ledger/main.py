import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.middleware.sessions import SessionMiddleware
from .config import settings
from .db import create_db_and_tables
from .errors import LedgerError
from .routers import admin, auth, points, redemptions, rewards

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    create_db_and_tables()
    yield


def create_app() -> FastAPI:
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    app = FastAPI(title=settings.APP_NAME, lifespan=lifespan)
    app.add_middleware(SessionMiddleware, secret_key=settings.SECRET_KEY)

    app.include_router(auth.router, prefix="/auth", tags=["auth"])
    app.include_router(points.router, prefix="/points", tags=["points"])
    app.include_router(rewards.router, prefix="/rewards", tags=["rewards"])
    app.include_router(redemptions.router, prefix="/redemptions", tags=["redemptions"])
    app.include_router(admin.router, prefix="/admin", tags=["admin"])

    @app.exception_handler(LedgerError)
    async def ledger_error_handler(request: Request, exc: LedgerError):
        if exc.http_status >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=exc.http_status, content=exc.to_dict())

    @app.get("/health")
    def health():
        return {"status": "ok"}

    return app


app = create_app()
