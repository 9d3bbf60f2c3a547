import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from fastapi.routing import APIRoute
from sqlmodel import Session
from starlette.middleware.cors import CORSMiddleware

from app.api.errors import APIError, api_error_handler
from app.api.main import api_router
from app.core.config import settings
from app.core.db import engine, init_db

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

NUCLEUS_PREFIX = f"{settings.API_V1_STR}/nucleus"
NUCLEUS_CORS_METHODS = "GET, POST, PUT, DELETE, OPTIONS"
NUCLEUS_CORS_HEADERS = "Content-Type, Authorization"


def custom_generate_unique_id(route: APIRoute) -> str:
    tag = route.tags[0] if route.tags else "default"
    return f"{tag}-{route.name}"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    with Session(engine) as session:
        init_db(session)
    logger.info("%s started (%s)", settings.PROJECT_NAME, settings.ENVIRONMENT)
    yield


def nucleus_cors_headers(origin: str | None) -> dict[str, str]:
    configured = settings.NUCLEUS_CORS_ORIGINS.strip() or "*"
    if configured == "*":
        allow_origin = "*"
    else:
        allowed = [o.strip().rstrip("/") for o in configured.split(",") if o.strip()]
        if not origin or origin.rstrip("/") not in allowed:
            return {}
        allow_origin = origin
    headers = {
        "Access-Control-Allow-Origin": allow_origin,
        "Access-Control-Allow-Methods": NUCLEUS_CORS_METHODS,
        "Access-Control-Allow-Headers": NUCLEUS_CORS_HEADERS,
        "Access-Control-Max-Age": "86400",
    }
    if allow_origin != "*":
        headers["Vary"] = "Origin"
    return headers


app = FastAPI(
    title=settings.PROJECT_NAME,
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
    generate_unique_id_function=custom_generate_unique_id,
    lifespan=lifespan,
)

app.add_exception_handler(APIError, api_error_handler)

if settings.all_cors_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.all_cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


@app.middleware("http")
async def nucleus_cors(request: Request, call_next):  # type: ignore[no-untyped-def]
    if not request.url.path.startswith(NUCLEUS_PREFIX):
        return await call_next(request)

    headers = nucleus_cors_headers(request.headers.get("origin"))
    if request.method == "OPTIONS":
        return Response(status_code=200, headers=headers)
    response = await call_next(request)
    response.headers.update(headers)
    return response


app.include_router(api_router, prefix=settings.API_V1_STR)
