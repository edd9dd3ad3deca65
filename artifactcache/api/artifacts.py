"""API endpoints for uploading and downloading build artifacts."""

import logging
from typing import AsyncIterator

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from fastapi.responses import StreamingResponse
from starlette.requests import ClientDisconnect

from artifactcache.api.auth import get_cache
from artifactcache.cache import ArtifactCache
from artifactcache.storage import InvalidKey, LocalStore, validate_key

ARTIFACTS_PREFIX = "/v8/artifacts"

CORS_HEADERS = {
    "Access-Control-Allow-Headers": "Authorization",
    "Access-Control-Allow-Methods": "GET, PUT, HEAD, OPTIONS",
}

app_artifacts = APIRouter(prefix=ARTIFACTS_PREFIX, tags=["artifacts"])


def HTTPException_if_invalid_key(key: str) -> str:
    try:
        return validate_key(key)
    except InvalidKey:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not Found")


async def stream_artifact(store: LocalStore, key: str) -> AsyncIterator[bytes]:
    """Stream the artifact bytes. Failures halfway just end the response, the status is already sent."""
    try:
        async for chunk in store.read(key):
            yield chunk
    except OSError as e:
        logging.warning(f"Streaming artifact {key} failed: {e}")


@app_artifacts.options("/{key:path}")
async def artifact_options(key: str):
    """CORS preflight, answered the same whether or not the artifact exists."""
    return Response(status_code=status.HTTP_200_OK, headers=CORS_HEADERS)


@app_artifacts.api_route("/{key:path}", methods=["GET", "HEAD"])
async def get_artifact(key: str, request: Request, cache: ArtifactCache = Depends(get_cache)):
    """
    Download an artifact.

    HEAD only tells whether the artifact is cached. A miss is a 404, which is expected the first time
    a build task runs.
    """
    hit = key in cache.index
    logging.info(f"{request.method} - {request.url.path} {'HIT' if hit else 'MISS'}")
    if not hit:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not Found")
    if request.method == "HEAD":
        return Response(status_code=status.HTTP_200_OK)
    return StreamingResponse(stream_artifact(cache.store, key), media_type="application/octet-stream")


@app_artifacts.put("/{key:path}")
async def put_artifact(key: str, request: Request, cache: ArtifactCache = Depends(get_cache)):
    """
    Upload an artifact, replacing any earlier version.

    The request body is streamed to disk. The artifact only becomes visible once it is completely written;
    if the upload fails, nothing is registered and the partial file is removed.
    Moving the file into place and registering it happen under the index lock, like the cleanup of expired artifacts.
    """
    logging.info(f"PUT - {request.url.path}")
    HTTPException_if_invalid_key(key)
    try:
        tmp, size = await cache.store.receive(request.stream())
        async with cache.index.lock:
            await cache.store.commit(tmp, key)
            cache.index.set(key, cache.clock())
    except (OSError, ClientDisconnect) as e:
        logging.warning(f"Failed to set artifact {key}: {e!r}")
        return Response(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)
    logging.debug(f"Stored artifact {key} ({size} bytes)")
    return Response(status_code=status.HTTP_200_OK)
