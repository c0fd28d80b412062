"""
HTTP host for codemender.

It exposes the following endpoints:
- **GET /health**  - liveness check.
- **POST /review**  - run one review-and-fix session: {"directory": "..."}

Every finished session answers 200 with a tagged ``outcome`` (``summary``, ``budget_exhausted`` or
``failure``); request problems answer 4xx and a missing model credential answers 503.
"""

import logging
import os

from fastapi import (
    Depends,
    FastAPI,
    HTTPException,
)

from codemender.agent.agent_loop import run_review
from codemender.agent.gateway import (
    BaseGateway,
    GatewayConfigError,
    load_gateway,
)
from codemender.api.models import (
    ReviewRequest,
    ReviewResponse,
)
from codemender.common import (
    AnsiColors,
    colored_print,
)
from codemender.config import (
    SECRET_FIELDS,
    settings,
)

logger = logging.getLogger(__name__)

app = FastAPI(
    title="codemender API", version="0.1.0", description="Automated review-and-fix sessions"
)


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------
def get_gateway() -> BaseGateway:
    """Build the configured gateway; overridden in tests."""
    try:
        return load_gateway(config=settings)
    except GatewayConfigError as exc:
        logger.error("Gateway unavailable: %s", exc)
        raise HTTPException(status_code=503, detail=str(exc)) from exc


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------
@app.get("/health", summary="Health check")
async def health() -> dict[str, str]:
    """Return a simple liveness payload."""
    return {"status": "ok"}


@app.post("/review", response_model=ReviewResponse, summary="Review and fix a directory")
async def review_endpoint(
    req: ReviewRequest, gateway: BaseGateway = Depends(get_gateway)
) -> ReviewResponse:
    """Run a review session over ``req.directory`` and return how it ended."""
    directory = os.path.abspath(req.directory)
    try:
        if not os.path.isdir(directory):
            raise HTTPException(status_code=400, detail=f"Not a directory: {req.directory}")
        outcome = await run_review(
            directory,
            gateway,
            max_steps=req.max_steps or settings.MAX_STEPS,
            timeout=settings.GATEWAY_TIMEOUT,
            max_retries=settings.GATEWAY_MAX_RETRIES,
        )
    finally:
        await gateway.aclose()

    logger.info("Review of %s ended with %s", directory, outcome.status)
    return ReviewResponse(directory=directory, outcome=outcome)


# ---------------------------------------------------------------------------
# Public helper to launch the API (imported by main.py)
# ---------------------------------------------------------------------------
def run_api(
    host: str = "0.0.0.0", port: int = 8000, reload: bool = False, log_level: str | None = None
) -> None:
    """Start a uvicorn server hosting *app*.

    Parameters
    ----------
    host, port:
        Bind address for the HTTP server.
    reload:
        If *True*, enable auto-reload (useful in development).
    log_level:
        Logging level to use (default from settings if not provided).
    """

    # Lazy import - keeps uvicorn an optional dependency at package import time
    import uvicorn  # pylint: disable=import-outside-toplevel

    if log_level is None:  # Use the default from settings if not provided
        log_level = settings.LOG_LEVEL

    logger.info(
        "Starting codemender API at %s:%d (reload=%s, log_level=%s)", host, port, reload, log_level
    )
    logger.debug("API settings: %s", settings.model_dump(exclude=SECRET_FIELDS))

    colored_print(f"🔧 codemender API is running at http://localhost:{port}.", AnsiColors.GREEN)
    colored_print(f"Visit http://localhost:{port}/docs for API documentation.", AnsiColors.BLUE)
    uvicorn.run(
        "codemender.api.app:app",
        host=host,
        port=port,
        reload=reload,
        log_level=log_level,
    )


# ---------------------------------------------------------------------------
# `python -m codemender.api.app` helper
# ---------------------------------------------------------------------------
if __name__ == "__main__":
    run_api(reload=True)
