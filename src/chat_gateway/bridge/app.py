"""
Chat Gateway Bridge

A FastAPI service that fronts the managed cloud backends for the gateway's
`bedrock` and `bedrock-mantle` adapters.

Features:
- Bedrock model discovery from system-defined inference profiles
- Bedrock ConverseStream chat, document and image attachments included
- Bedrock Mantle model listing and chat across supported regions
- One SSE envelope (`content` / `reasoning` / `metadata`, then `[DONE]`)
"""

import os
import logging
from contextlib import asynccontextmanager
from typing import Optional

import boto3
import httpx
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from opentelemetry import trace
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.sdk.resources import Resource

from . import bedrock_bridge, mantle_bridge
from .envelope import BridgeError

# Configure logging
logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"))
logger = logging.getLogger(__name__)

SERVICE_NAME = "chat-gateway-bridge"


def setup_tracing() -> None:
    """Export spans over OTLP when OTEL_EXPORTER_OTLP_ENDPOINT is set."""
    otel_endpoint = os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT")
    if not otel_endpoint:
        return

    resource = Resource.create({"service.name": SERVICE_NAME})
    provider = TracerProvider(resource=resource)
    processor = BatchSpanProcessor(OTLPSpanExporter(endpoint=otel_endpoint))
    provider.add_span_processor(processor)
    trace.set_tracer_provider(provider)
    logger.info(f"Tracing exported to {otel_endpoint}")


def aws_region() -> str:
    return os.getenv("AWS_REGION") or os.getenv("AWS_DEFAULT_REGION") or "us-west-2"


def create_app(
    bedrock_client=None,
    bedrock_runtime_client=None,
    mantle_http_client: Optional[httpx.AsyncClient] = None,
) -> FastAPI:
    """
    Build the bridge application.

    Clients that are not passed in are created at startup: boto3 clients for
    the configured AWS region and an httpx client for Mantle.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        setup_tracing()

        owns_http_client = False
        if app.state.bedrock_client is None:
            app.state.bedrock_client = boto3.client("bedrock", region_name=aws_region())
        if app.state.bedrock_runtime_client is None:
            app.state.bedrock_runtime_client = boto3.client("bedrock-runtime", region_name=aws_region())
        if app.state.mantle_http_client is None:
            app.state.mantle_http_client = httpx.AsyncClient(timeout=httpx.Timeout(120.0))
            owns_http_client = True

        logger.info(f"Bridge service started (AWS region {aws_region()})")
        yield

        if owns_http_client:
            await app.state.mantle_http_client.aclose()
            app.state.mantle_http_client = None
        logger.info("Bridge service stopped")

    app = FastAPI(
        title="Chat Gateway Bridge",
        description="Bedrock and Bedrock Mantle bridge for the chat gateway",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.state.bedrock_client = bedrock_client
    app.state.bedrock_runtime_client = bedrock_runtime_client
    app.state.mantle_http_client = mantle_http_client

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "X-Mantle-Api-Key", "X-Mantle-Region"],
    )

    @app.exception_handler(BridgeError)
    async def bridge_error_handler(request: Request, exc: BridgeError):
        logger.error(f"{request.url.path}: {exc.status_code} {exc.error}")
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.get("/health")
    async def health():
        return {"status": "healthy", "service": SERVICE_NAME}

    app.include_router(bedrock_bridge.router)
    app.include_router(mantle_bridge.router)

    # Instrument with OpenTelemetry
    FastAPIInstrumentor.instrument_app(app)

    return app


def main() -> None:
    import uvicorn

    uvicorn.run(
        create_app(),
        host=os.getenv("BRIDGE_HOST", "127.0.0.1"),
        port=int(os.getenv("BRIDGE_PORT", "8787")),
    )


if __name__ == "__main__":
    main()
