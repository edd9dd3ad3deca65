"""Self-hosted remote cache for Turborepo build artifacts."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.responses import PlainTextResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from artifactcache.api.artifacts import app_artifacts
from artifactcache.api.auth import forbidden, get_cache, is_authorized
from artifactcache.cache import artifact_cache


@asynccontextmanager
async def lifespan(app: FastAPI):
    logging.info("Indexing artifacts...")
    async with artifact_cache() as cache:
        app.state.cache = cache
        yield
        app.state.cache = None


app = FastAPI(
    title="Artifact cache",
    description=__doc__ if __doc__ else "",
    openapi_tags=[
        dict(name="artifacts", description="Endpoints to upload and download build artifacts"),
    ],
    lifespan=lifespan,
    # Only the artifact endpoints are served, everything else is a 404
    docs_url=None,
    redoc_url=None,
    openapi_url=None,
    redirect_slashes=False,
)
app.include_router(app_artifacts)


@app.middleware("http")
async def sweep_and_authorize(request: Request, call_next):
    """
    Runs for every request, before routing:
    - start a cleanup run if one is due (a no-op most of the time)
    - reject requests without the right bearer token, whatever path or method they use
    """
    try:
        cache = get_cache(request)
        await cache.sweeper.maybe_sweep()
        if not is_authorized(request, cache):
            return forbidden(request)
        return await call_next(request)
    except Exception:
        logging.exception(f"Error handling {request.method} {request.url.path}")
        return PlainTextResponse("Internal Server Error", status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    # Unknown paths, cache misses and unsupported methods all look the same to the client
    if exc.status_code in (status.HTTP_404_NOT_FOUND, status.HTTP_405_METHOD_NOT_ALLOWED):
        return PlainTextResponse("Not Found", status_code=status.HTTP_404_NOT_FOUND)
    return PlainTextResponse(str(exc.detail), status_code=exc.status_code, headers=getattr(exc, "headers", None))
