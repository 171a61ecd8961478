from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.responses import Response

from app.api.scorecards import router as scorecards_router
from app.logging import configure_logging, get_logger
from app.services.scorecards.errors import ScorecardError

configure_logging()
logger = get_logger(__name__)

app = FastAPI(title="Agent scorecards API")


@app.exception_handler(ScorecardError)
async def scorecard_error_handler(request: Request, exc: ScorecardError):
    if exc.retryable:
        logger.warning("scorecard_request_failed path=%s code=%s", request.url.path, exc.code)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail, "code": exc.code})


app.include_router(scorecards_router)


@app.get("/health")
def health_check():
    return {"status": "ok"}


@app.head("/health")
def head_health():
    return Response(status_code=200)


@app.get("/metrics")
def metrics():
    data = generate_latest()
    return Response(content=data, media_type=CONTENT_TYPE_LATEST)
