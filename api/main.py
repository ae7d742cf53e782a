from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from auth.dependencies import authorize_request
from common.errors import register_exception_handlers
from common.public import public_routes
from common.request_logging import RequestLoggingMiddleware
from common.response_envelope import ResponseEnvelopeMiddleware
from core import config, db
from core.log import setup_logging
from users import router as users_router
from users.service import users_collection


@asynccontextmanager
async def lifespan(_: FastAPI):
    # Initialize the DB pool once per process.
    await db.init_pool()
    try:
        await users_collection.ensure_table()
        yield
    finally:
        await db.close_pool()


def create_app(*, with_lifespan: bool = True) -> FastAPI:
    setup_logging(config.log_level())

    app = FastAPI(
        title="Document store API",
        lifespan=lifespan if with_lifespan else None,
        dependencies=[Depends(authorize_request)],
    )

    app.add_middleware(ResponseEnvelopeMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    # Added last so it wraps CORS and sees every request first.
    app.add_middleware(RequestLoggingMiddleware)

    register_exception_handlers(app)

    app.include_router(users_router.router, tags=["users"])

    @app.get("/health", name="app:health")
    def health() -> dict:
        return {"status": "ok"}

    @app.get("/", name="app:root")
    def root() -> dict:
        return {"message": "document store api"}

    public_routes.mark("app:health", "app:root")
    return app


app = create_app()
