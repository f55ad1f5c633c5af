from fastapi import FastAPI

from backend.api.routes.contributions import router
from backend.core.middleware import ContributionsRateLimitMiddleware
from backend.core.observability import configure_logging
from backend.core.observability import init_sentry
from backend.settings import Settings


def create_app() -> FastAPI:
    """Build the FastAPI application with logging, Sentry and rate limiting."""

    app_settings = Settings()
    configure_logging(app_settings)
    init_sentry(app_settings)

    app = FastAPI(title="GitHub Contribution History")
    app.add_middleware(
        ContributionsRateLimitMiddleware,
        requests_per_window=app_settings.rate_limit_per_minute,
        window_seconds=app_settings.rate_limit_window_seconds,
    )
    app.include_router(router)
    return app


app = create_app()
