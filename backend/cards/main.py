from __future__ import annotations
import uuid
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from cards.config import settings
from cards.errors import CardError
from cards.logging_setup import configure_logging
from cards.routes.system import router as system_router
from cards.routes.posts import router as posts_router
from cards.routes.extensions import router as extensions_router
from cards.routes.polls import router as polls_router
from cards.routes.prompts import router as prompts_router
from cards.routes.challenges import router as challenges_router
from cards.routes.qna import router as qna_router
import structlog

configure_logging()
log = structlog.get_logger()

@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    log.info("startup", env=settings.environment, version=settings.app_version, git_sha=settings.git_sha,
             notifications=settings.notifications_mode)
    yield
    # Shutdown
    log.info("shutdown")

app = FastAPI(
    title=f"{settings.app_display_name} API",
    version=settings.app_version,
    lifespan=lifespan,
    description=f"{settings.app_display_name} API for interactive feed cards",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if settings.environment == "dev" else settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.exception_handler(CardError)
async def card_error_handler(request: Request, exc: CardError):
    if exc.status_code >= 500:
        log.error("card.error", path=request.url.path, error=exc.message)
    else:
        log.info("card.rejected", path=request.url.path, status=exc.status_code, error=exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})

@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    # Malformed bodies are client errors like any other validation failure
    return JSONResponse(status_code=400, content={"detail": jsonable_encoder(exc.errors())})

# Include routers
app.include_router(system_router)
app.include_router(posts_router)
app.include_router(extensions_router)
app.include_router(polls_router)
app.include_router(prompts_router)
app.include_router(challenges_router)
app.include_router(qna_router)

@app.middleware("http")
async def add_request_id(request: Request, call_next):
    rid = request.headers.get("x-request-id") or str(uuid.uuid4())
    request.state.request_id = rid
    structlog.contextvars.bind_contextvars(request_id=rid)
    response: Response = await call_next(request)
    response.headers["X-Request-ID"] = rid
    structlog.contextvars.clear_contextvars()
    return response
