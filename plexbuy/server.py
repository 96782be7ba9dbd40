import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel, ConfigDict, Field

from plexbuy import __version__
from plexbuy.advisor import ShoppingAdvisor
from plexbuy.catalog import AffiliateLinker
from plexbuy.config import Settings
from plexbuy.errors import RequestProcessingError
from plexbuy.gemini_client import GeminiClient
from plexbuy.product_store import ProductStore
from plexbuy.readiness import DisabledCapability, ReadinessGate

logger = logging.getLogger(__name__)


class AdviceRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    query: Optional[str] = None
    user_id: Optional[str] = Field(None, alias="userId")
    language: Optional[str] = "en"


@dataclass
class Services:
    gate: ReadinessGate
    advisor: ShoppingAdvisor
    text_service: Any = None
    store_service: Any = None
    mode: str = "production"

    async def close(self):
        for service in (self.text_service, self.store_service):
            if service is None:
                continue
            try:
                await service.close()
            except Exception as e:
                logger.warning(f"Error closing {type(service).__name__}: {e}")


def build_services(settings: Settings) -> Services:
    linker = AffiliateLinker(settings.affiliate_tag, settings.flipkart_affiliate_id)

    if not settings.services_enabled:
        logger.warning("External services disabled, running in fallback mode")
        gate = ReadinessGate(DisabledCapability("Gemini"), DisabledCapability("MongoDB"))
        advisor = ShoppingAdvisor(gate, None, None, linker, settings.max_products)
        return Services(gate=gate, advisor=advisor, mode="fallback")

    text_service = GeminiClient(
        settings.gemini_api_key,
        model=settings.gemini_model,
        base_url=settings.gemini_base_url,
        timeout=settings.gemini_timeout,
    )
    store_service = ProductStore(
        settings.mongodb_uri,
        database=settings.mongodb_database,
        collection=settings.mongodb_collection,
        timeout_ms=settings.mongodb_timeout_ms,
    )
    gate = ReadinessGate(text_service, store_service)
    advisor = ShoppingAdvisor(gate, text_service, store_service, linker, settings.max_products)
    return Services(gate=gate, advisor=advisor, text_service=text_service, store_service=store_service)


def create_app(settings: Optional[Settings] = None, services: Optional[Services] = None) -> FastAPI:
    settings = settings or Settings.from_env()
    logging.basicConfig(level=settings.log_level)
    services = services or build_services(settings)
    gate = services.gate
    advisor = services.advisor

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"PlexBuy backend starting ({services.mode} mode)")
        init_task = asyncio.create_task(gate.ensure_ready())
        yield
        if not init_task.done():
            init_task.cancel()
        await services.close()
        logger.info("PlexBuy backend stopped")

    app = FastAPI(title="PlexBuy Shopping Advisor", version=__version__, lifespan=lifespan)
    app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/", response_class=PlainTextResponse)
    async def root():
        return "PlexBuy Backend is UP and RUNNING!"

    @app.get("/health")
    async def health_check():
        if services.mode == "fallback":
            message = "Server is successfully running in Fallback/Test mode."
        elif gate.state != "completed":
            message = "Server is running; services are still initializing."
        elif gate.is_text_service_ready() and gate.is_store_service_ready():
            message = "Server is running with all services available."
        else:
            message = "Server is running with fallbacks for unavailable services."

        return {
            "success": True,
            "services": {**gate.snapshot(), "api": "running"},
            "mode": services.mode,
            "initialization": gate.state,
            "version": __version__,
            "message": message,
        }

    @app.post("/api/advise")
    async def advise(request: AdviceRequest):
        if not request.query or not request.query.strip():
            return JSONResponse(status_code=400, content={"success": False, "error": "Query is required"})

        try:
            return await advisor.advise(request.query, request.user_id, request.language)
        except Exception as e:
            error = RequestProcessingError(f"{type(e).__name__}: {e}")
            logger.error(f"Advice request failed for '{request.query}': {error}")
            return advisor.degraded_response(
                request.query, request.user_id, request.language, error=type(error).__name__
            )

    return app


app = create_app()
