"""FastAPI application factory"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from lending_engine.api.middleware import RequestIDMiddleware, MetricsMiddleware
from lending_engine.api.v1 import calculator, loans, phases
from lending_engine.api.v1.errors import to_http_error
from lending_engine.domain.exceptions import DomainException
from lending_engine.infrastructure.observability.logging import setup_logging
from lending_engine.config import settings

setup_logging(settings.log_level, settings.service_name)


async def domain_error_handler(request: Request, exc: DomainException) -> JSONResponse:
    """Domain errors that escape a route get the same body as mapped ones"""
    error = to_http_error(exc)
    return JSONResponse(status_code=error.status_code, content={"detail": error.detail})


def create_app() -> FastAPI:
    """Wire routers, middleware and the operational endpoints"""
    app = FastAPI(
        title="Lending Engine",
        description="Repayment schedules, risk scorecard and loan approval workflow",
        version="0.1.0",
    )

    # Last added runs first: request id is set before metrics are timed
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)
    app.add_exception_handler(DomainException, domain_error_handler)

    @app.get("/health")
    def health_check():
        return {
            "status": "ok",
            "service": settings.service_name,
            "funding_backend": "ledger" if settings.ledger_api_base else "database",
        }

    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    for router, tag in ((calculator.router, "calculator"), (phases.router, "phases"), (loans.router, "loans")):
        app.include_router(router, prefix="/v1", tags=[tag])

    return app


app = create_app()
