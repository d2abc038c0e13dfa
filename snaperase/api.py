"""
FastAPI layer exposing background removal.

Endpoints:
 - GET /health
 - POST /remove-bg          JSON body with an image URL
 - POST /remove-bg/upload   raw image bytes as the request body

Both removal endpoints answer with the RGBA result as `image/png`.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, HTTPException, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import Response
from pydantic import BaseModel, HttpUrl
import requests

from . import config
from .errors import BackgroundRemovalError, InvalidInput, ModelUnavailable
from .pipeline import process_image_bytes

settings = config.get_settings()
logging.basicConfig(level=getattr(logging, settings.log_level.upper(), logging.INFO))
logger = logging.getLogger(__name__)

app = FastAPI(title="snaperase Background Removal Service", version="0.1.0")


class RemoveBgRequest(BaseModel):
    imageUrl: HttpUrl


def _download_image(url: str) -> bytes:
    resp = requests.get(url, timeout=(5, settings.request_timeout_seconds))
    resp.raise_for_status()
    return resp.content


def _remove_bg_response(image_bytes: bytes) -> Response:
    try:
        png_bytes = process_image_bytes(image_bytes)
    except InvalidInput as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except ModelUnavailable as exc:
        logger.error("Model unavailable: %s", exc)
        raise HTTPException(status_code=503, detail="Segmentation model unavailable") from exc
    except BackgroundRemovalError as exc:
        logger.exception("Background removal failed: %s", exc)
        raise HTTPException(status_code=500, detail="Background removal failed") from exc
    except Exception as exc:  # noqa: BLE001
        logger.exception("Unexpected error during background removal: %s", exc)
        raise HTTPException(status_code=500, detail="Background removal failed") from exc
    return Response(content=png_bytes, media_type="image/png")


@app.get("/health")
def health():
    return {"status": "ok"}


@app.post("/remove-bg")
def remove_bg(body: RemoveBgRequest):
    try:
        image_bytes = _download_image(str(body.imageUrl))
    except requests.RequestException as exc:
        logger.exception("Failed to download image: %s", exc)
        raise HTTPException(status_code=400, detail="Could not download image") from exc
    return _remove_bg_response(image_bytes)


@app.post("/remove-bg/upload")
async def remove_bg_upload(request: Request):
    image_bytes = await request.body()
    return await run_in_threadpool(_remove_bg_response, image_bytes)
