"""
Main FastAPI application entry point.

This module creates and configures the storefront checkout API, registers
the product and checkout routers, and sets up middleware and the health
check endpoint.
"""

import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI

# Load environment variables from .env file
load_dotenv()
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from storefront.deps import close_clients, get_config
from storefront.payment.providers import check_rpc_endpoint
from storefront.payment.routes import router as checkout_router
from storefront.store.routes import router as products_router

# Configuration constants
DEFAULT_PORT = 8000
API_VERSION = "0.1.0"
SERVICE_NAME = "storefront-checkout"

# Environment variable keys
ENV_PORT = "STOREFRONT_PORT"
ENV_LOG_LEVEL = "LOG_LEVEL"

logging.basicConfig(
    level=os.getenv(ENV_LOG_LEVEL, "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    await close_clients()


def create_app() -> FastAPI:
    """Create and configure the main FastAPI application.

    Returns:
        Configured FastAPI application instance
    """
    app = FastAPI(
        title="Storefront Checkout API",
        description="Crypto storefront payment verification",
        version=API_VERSION,
        lifespan=lifespan,
    )

    # Add CORS middleware (handles OPTIONS from the storefront pages)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Register health check endpoint
    @app.get("/health")
    def health_check() -> JSONResponse:
        """Health check endpoint for monitoring and load balancers."""
        chain = get_config().chain_spec()
        rpc = (
            check_rpc_endpoint(chain.rpc_urls[0], chain.chain_id)
            if chain.rpc_urls
            else {"healthy": False, "chain_id": None, "error": "No RPC URL configured"}
        )
        return JSONResponse(
            content={
                "status": "healthy",
                "service": SERVICE_NAME,
                "version": API_VERSION,
                "chain": {"name": chain.name, **rpc},
            }
        )

    app.include_router(products_router)
    app.include_router(checkout_router)

    return app


# Create the application instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    port = int(os.getenv(ENV_PORT, str(DEFAULT_PORT)))
    logger.info(f"Starting {SERVICE_NAME} on port {port}")
    uvicorn.run("storefront.main:app", host="0.0.0.0", port=port)
