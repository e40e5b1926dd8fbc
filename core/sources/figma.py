"""Figma REST API access: file documents, rendered PDF urls and downloads."""

from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from pathlib import Path
from types import TracebackType
from typing import Any

import httpx

from core.config import Settings
from core.document.models import DocumentTree
from core.utils.errors import UpstreamFetchError

logger = logging.getLogger("figsync.sources")


class FigmaClient:
    """Async client for the subset of the Figma REST API the engine needs."""

    def __init__(
        self,
        token: str,
        *,
        base_url: str = "https://api.figma.com",
        timeout_seconds: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._auth_headers = {"X-Figma-Token": token}
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout_seconds,
            transport=transport,
        )

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> FigmaClient:
        return cls(
            settings.require("figma_token"),
            base_url=settings.figma_api_base_url,
            timeout_seconds=settings.http_timeout_seconds,
            transport=transport,
        )

    async def __aenter__(self) -> FigmaClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def fetch_document(self, file_key: str) -> DocumentTree:
        """Fetch and parse the whole design file."""

        payload = await self._get_json(f"/v1/files/{file_key}")
        try:
            return DocumentTree.from_figma(payload)
        except ValueError as exc:
            raise UpstreamFetchError(f"Unexpected Figma file payload: {exc}", source="figma") from exc

    async def fetch_pdf_urls(self, file_key: str, frame_ids: Sequence[str]) -> list[str]:
        """Request PDF renders and return one url per id, aligned with ``frame_ids``."""

        if not frame_ids:
            return []

        payload = await self._get_json(
            f"/v1/images/{file_key}",
            params={"ids": ",".join(frame_ids), "format": "pdf"},
        )
        images = payload.get("images") or {}
        if not isinstance(images, dict):
            raise UpstreamFetchError("Figma images response has no 'images' map", source="figma")
        logger.info("figma images response keys: %s", sorted(images))

        urls: list[str] = []
        for frame_id in frame_ids:
            url = images.get(frame_id)
            if not isinstance(url, str) or not url:
                raise UpstreamFetchError(
                    f"No PDF url returned for frame {frame_id}", source="figma"
                )
            urls.append(url)
        return urls

    async def download(self, url: str) -> bytes:
        """Download one rendered page."""

        try:
            response = await self._client.get(url)
        except httpx.HTTPError as exc:
            raise UpstreamFetchError(f"PDF download failed: {exc}", source="download") from exc

        if response.status_code >= 400:
            raise UpstreamFetchError(
                f"PDF download failed: {response.status_code} {response.text}",
                source="download",
                status_code=response.status_code,
            )
        return response.content

    async def _get_json(self, path: str, params: dict[str, str] | None = None) -> dict[str, Any]:
        try:
            response = await self._client.get(path, params=params, headers=self._auth_headers)
        except httpx.HTTPError as exc:
            raise UpstreamFetchError(f"Figma API request failed: {exc}", source="figma") from exc

        if response.status_code >= 400:
            message = _error_message(response)
            logger.error("figma api error [%s]: %s", response.status_code, message)
            raise UpstreamFetchError(
                f"Figma API error {response.status_code}: {message}",
                source="figma",
                status_code=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as exc:
            raise UpstreamFetchError("Figma API returned invalid JSON", source="figma") from exc
        if not isinstance(payload, dict):
            raise UpstreamFetchError("Figma API returned a non-object JSON body", source="figma")
        return payload


def load_document_file(path: Path) -> DocumentTree:
    """Parse a saved ``GET /v1/files/:key`` response from disk."""

    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid document JSON: {path}") from exc
    if not isinstance(raw, dict):
        raise ValueError(f"Document JSON must be an object: {path}")
    return DocumentTree.from_figma(raw)


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(body, dict):
        for key in ("err", "message", "error"):
            value = body.get(key)
            if isinstance(value, str) and value:
                return value
    return response.text or response.reason_phrase
