from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from redis.asyncio import Redis

from api.routers import account, games, quizzes, shared
from api.schemas import Health
from core.config import settings
from core.errors import InternalError, QuizForgeError, QuotaError, ValidationError
from core.logger import logger

# API Documentation
API_DESCRIPTION = """
## QuizForge API

Quiz library, share links, timed attempts and live multiplayer games.

### Authentication

Endpoints marked as requiring auth accept a signed identity token:

- Header: `X-Auth-Token: <token>`
- Or: `Authorization: Bearer <token>`

Share-link endpoints (`/api/shared/...`, `/api/attempts/...`) are public and
gated by the share token plus an optional password.

### Errors

Every failure has the body `{"kind", "message", "details"?}`. `details` carries
`retryAfterSeconds` for cooldowns and `dailyLimit`/`currentCount` for quotas.
"""

TAGS_METADATA = [
    {"name": "quizzes", "description": "Owner-scoped quiz library and sharing."},
    {"name": "shared", "description": "Public access through share tokens and timed attempts."},
    {"name": "games", "description": "Live host-driven games, answers and the event feed."},
    {"name": "account", "description": "Feedback and content generation."},
    {"name": "info", "description": "Service health."},
]


@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.redis = Redis.from_url(settings.REDIS_URL, decode_responses=True)
    logger.info("API started", env=settings.ENV)
    try:
        yield
    finally:
        await app.state.redis.aclose()
        logger.info("API stopped")


app = FastAPI(
    title="QuizForge API",
    description=API_DESCRIPTION,
    version="1.0.0",
    openapi_tags=TAGS_METADATA,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)


@app.middleware("http")
async def add_cache_headers(request: Request, call_next):
    response = await call_next(request)

    # Share tokens travel in the path; keep those responses out of shared caches
    if request.url.path.startswith("/api/shared/"):
        response.headers.setdefault("Cache-Control", "no-store")
        response.headers.setdefault("Pragma", "no-cache")

    return response


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(QuizForgeError)
async def quizforge_error_handler(request: Request, exc: QuizForgeError):
    headers = {}
    if isinstance(exc, QuotaError) and exc.retry_after_seconds:
        headers["Retry-After"] = str(exc.retry_after_seconds)
    if exc.status_code >= 500:
        logger.error("Request failed", path=request.url.path, kind=exc.kind, error=exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = [{"loc": [str(part) for part in e.get("loc", ())], "msg": e.get("msg")} for e in exc.errors()]
    error = ValidationError(details={"errors": errors})
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error", path=request.url.path)
    error = InternalError()
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


app.include_router(quizzes.router)
app.include_router(shared.router)
app.include_router(games.router)
app.include_router(account.router)


@app.get("/api/health", response_model=Health, tags=["info"], summary="Liveness probe")
async def health():
    return {"status": "ok"}


@app.get("/favicon.ico", include_in_schema=False)
async def favicon():
    return Response(status_code=204)
