from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from backoffice import __version__
from backoffice.api import create_api_router
from backoffice.core.config import get_settings
from backoffice.core.logging import configure_logging
from backoffice.infrastructure.database import init_db
from backoffice.interfaces.http.deps import get_gateway_registry
from backoffice.modules.gateways import GatewayRegistry
from backoffice.schemas import HealthResponse

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(settings.logging)
    if settings.environment in ("development", "test"):
        # production schemas are managed by alembic
        await init_db()
    yield


def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.project_name,
        description="Deposit and withdrawal reconciliation back office",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(create_api_router(settings.api_prefix))

    @app.get("/healthz", response_model=HealthResponse)
    async def healthz(registry: GatewayRegistry = Depends(get_gateway_registry)):
        return HealthResponse(status="ok", version=__version__, gateways=sorted(registry.available()))

    return app


app = create_app()
