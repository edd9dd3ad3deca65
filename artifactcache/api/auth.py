"""Helper methods for authentication."""

import logging

from fastapi import Request
from fastapi.responses import PlainTextResponse

from artifactcache.cache import ArtifactCache


def get_cache(request: Request) -> ArtifactCache:
    """
    Use this function (or Depends(get_cache)) to access the cache set up in the lifespan.
    """
    cache = getattr(request.app.state, "cache", None)
    if cache is None:
        raise RuntimeError("Artifact cache not initialized")
    return cache


def bearer(token: str) -> str:
    return f"Bearer {token}"


def is_authorized(request: Request, cache: ArtifactCache) -> bool:
    """Does the request carry exactly the configured bearer token?"""
    return request.headers.get("authorization") == bearer(cache.token)


def forbidden(request: Request) -> PlainTextResponse:
    host = request.client.host if request.client else None
    logging.info(f"Forbidden for {host} {request.url.path}")
    return PlainTextResponse("Forbidden", status_code=403)
