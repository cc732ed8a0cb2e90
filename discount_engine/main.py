import uvicorn
from fastapi import FastAPI

from discount_engine.api.routes.health import router as health_router
from discount_engine.api.routes.internal_discounts import router as internal_discounts_router
from discount_engine.core.config import get_settings
from discount_engine.core.logging import configure_logging


def create_app() -> FastAPI:
    settings = get_settings()
    configure_logging(settings.log_level)

    docs_enabled = settings.enable_openapi_docs
    app = FastAPI(
        title="Discount Engine API",
        version="0.1.0",
        docs_url="/docs" if docs_enabled else None,
        redoc_url="/redoc" if docs_enabled else None,
        openapi_url="/openapi.json" if docs_enabled else None,
    )
    app.include_router(health_router)
    app.include_router(internal_discounts_router)
    return app


app = create_app()


def run() -> None:
    settings = get_settings()
    uvicorn.run(
        "discount_engine.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=settings.app_env == "dev",
    )


if __name__ == "__main__":
    run()
