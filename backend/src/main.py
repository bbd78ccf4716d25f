from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from interception.api import rootca as rootca_api
from interception.ca.authority import CertificateAuthority
from opentelemetry import trace
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.logging import LoggingInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter
from shared.config import settings
from shared.logging import setup_logging
from shared.metrics import setup_metrics


# Setup OpenTelemetry Tracing
def setup_tracing() -> None:
    resource = Resource.create({"service.name": settings.APP_NAME})
    provider = TracerProvider(resource=resource)

    processor = BatchSpanProcessor(ConsoleSpanExporter())
    provider.add_span_processor(processor)

    trace.set_tracer_provider(provider)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # Startup
    setup_logging()
    setup_tracing()
    setup_metrics(settings.APP_NAME)

    LoggingInstrumentor().instrument(set_logging_format=True)

    # Root CA must be ready before the proxy accepts connections;
    # a capability error here aborts startup
    authority = CertificateAuthority.from_settings(settings)
    authority.initialize()

    rootca_api.set_certificate_authority(authority)

    yield


app = FastAPI(title=settings.APP_NAME, lifespan=lifespan)

# Instrument FastAPI
FastAPIInstrumentor.instrument_app(app)

# Include routers
app.include_router(rootca_api.router)


@app.get("/health")
async def health_check() -> dict[str, str]:
    return {"status": "ok", "service": settings.APP_NAME}
