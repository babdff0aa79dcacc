import logging
from datetime import datetime, timezone

from dotenv import load_dotenv
from fastapi import FastAPI

# Load environment variables from .env file before settings are resolved
load_dotenv()

from scanpay.api.scanner import router as scanner_router
from scanpay.services.config_service import ConfigService

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    settings = ConfigService().get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if not settings.backend_url:
        logger.warning("SCANPAY_BACKEND_URL not set - lookups and settlement will report unavailable")

    app = FastAPI(
        title="Scan-to-Pay Client Service",
        description="Scan or enter a payment token, confirm, and settle against the wallet backend.",
        version="0.1.0",
    )

    @app.get("/health", tags=["health"])
    def health_check():
        """Health check endpoint."""
        return {"status": "healthy", "timestamp": datetime.now(timezone.utc).isoformat()}

    app.include_router(scanner_router)
    return app


app = create_app()
