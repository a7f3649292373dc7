"""Test helpers: manifest and image builders plus an in-memory image host."""

from __future__ import annotations

import csv
import io
from typing import List, Optional, Sequence

import httpx
from PIL import Image

from app.models.manifest import REQUIRED_HEADERS

IMAGE_HOST = "https://images.example.com"


def make_image_bytes(fmt: str = "PNG", size=(48, 32), mode: str = "RGB") -> bytes:
    if mode in ("L", "P"):
        color = 120
    elif mode == "RGBA":
        color = (200, 30, 30, 128)
    else:
        color = (200, 30, 30)
    buffer = io.BytesIO()
    Image.new(mode, size, color).save(buffer, format=fmt)
    return buffer.getvalue()


def make_manifest(rows: Sequence[Sequence[str]], header: Optional[Sequence[str]] = None) -> io.BytesIO:
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(list(header) if header is not None else REQUIRED_HEADERS)
    for row in rows:
        writer.writerow(list(row))
    return io.BytesIO(buffer.getvalue().encode("utf-8"))


def image_url(path: str) -> str:
    return f"{IMAGE_HOST}/{path.lstrip('/')}"


class FakeImageHost:
    """
    Serves images by path prefix:
      /ok/...      -> a PNG
      /missing/... -> 404
      /down/...    -> connection error
      /slow/...    -> read timeout
      /text/...    -> 200 with non-image body
      /bomb/...    -> a PNG larger than the pixel cap tests install
    """

    def __init__(self, image: bytes):
        self.image = image
        self.large_image = make_image_bytes(size=(200, 200))
        self.calls: List[str] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(str(request.url))
        path = request.url.path
        if path.startswith("/missing"):
            return httpx.Response(404, text="not here")
        if path.startswith("/down"):
            raise httpx.ConnectError("connection refused", request=request)
        if path.startswith("/slow"):
            raise httpx.ReadTimeout("timed out", request=request)
        if path.startswith("/text"):
            return httpx.Response(200, content=b"<html>definitely not an image</html>")
        if path.startswith("/bomb"):
            return httpx.Response(200, content=self.large_image, headers={"content-type": "image/png"})
        return httpx.Response(200, content=self.image, headers={"content-type": "image/png"})

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)
