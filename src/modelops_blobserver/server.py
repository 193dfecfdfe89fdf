"""
HTTP front-end for the blob cache.

GET /<identifier> serves the blob as a static file (ranges, ETag,
Last-Modified). Resolution failures answer an opaque 500; the detail only
goes to the log. Handlers are plain functions, so FastAPI runs them on its
worker threads and a slow download never blocks other requests.
"""
from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.responses import FileResponse, PlainTextResponse

from .cache import BlobCache

__all__ = ["create_app"]

logger = logging.getLogger(__name__)

BLOB_MEDIA_TYPE = "application/octet-stream"


def create_app(cache: BlobCache) -> FastAPI:
    """
    Build the HTTP app around an already constructed cache.

    The cache (and the coordinator it owns) is shared by every request.
    """
    app = FastAPI(
        title="ModelOps Blob Server",
        version="0.1.0",
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
        # "/abc/" has two segments and must not be redirected to "/abc"
        redirect_slashes=False,
    )
    app.state.cache = cache

    @app.api_route("/{identifier}", methods=["GET"])
    def get_blob(identifier: str):
        try:
            f = cache.get_blob(identifier)
        except Exception:
            logger.exception(f"Error getting blob {identifier!r}")
            return PlainTextResponse("internal server error", status_code=500)

        with f:
            path = f.name

        logger.info(f"Serving blob {path}")
        return FileResponse(path, media_type=BLOB_MEDIA_TYPE)

    return app
