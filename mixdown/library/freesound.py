"""Freesound API client for sound search and preview download."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import httpx

from ..common.constants import (
    FREESOUND_API_URL,
    FREESOUND_SEARCH_FIELDS,
    FREESOUND_TIMEOUT,
)
from ..common.errors import FreesoundError

logger = logging.getLogger(__name__)


@dataclass
class SoundResult:
    id: int
    name: str
    username: str
    preview_url: str | None  # Best available MP3 preview
    download_url: str


class FreesoundClient:
    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = FREESOUND_API_URL,
        timeout: float = FREESOUND_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self._timeout, transport=self._transport, follow_redirects=True
        )

    async def _get(self, url: str, params: dict[str, str] | None = None) -> httpx.Response:
        try:
            async with self._client() as client:
                response = await client.get(url, params=params)
        except httpx.HTTPError as e:
            raise FreesoundError(f"Request to {url} failed: {e}") from e

        if response.is_error:
            raise FreesoundError(
                f"Request failed with status {response.status_code}",
                status_code=response.status_code,
            )
        return response

    def _parse_result(self, sound: dict[str, Any]) -> SoundResult:
        previews = sound.get("previews") or {}
        sound_id = int(sound["id"])
        return SoundResult(
            id=sound_id,
            name=str(sound.get("name", "")),
            username=str(sound.get("username", "")),
            preview_url=previews.get("preview-hq-mp3") or previews.get("preview-lq-mp3"),
            download_url=(
                f"{self._base_url}/sounds/{sound_id}/download/?token={self._api_key}"
            ),
        )

    async def search(self, query: str) -> list[SoundResult]:
        """Text search. Blank queries return no results without a request."""
        if not query.strip():
            return []

        response = await self._get(
            f"{self._base_url}/search/text/",
            params={
                "query": query,
                "fields": FREESOUND_SEARCH_FIELDS,
                "token": self._api_key,
            },
        )
        try:
            results = response.json()["results"]
            sounds = [self._parse_result(sound) for sound in results]
        except (ValueError, KeyError, TypeError) as e:
            raise FreesoundError(f"Malformed search response: {e}") from e

        logger.debug(f"Search {query!r} returned {len(sounds)} results")
        return sounds

    async def download(self, url: str) -> bytes:
        """Fetch a sound (typically its preview URL) as raw bytes."""
        response = await self._get(url)
        logger.debug(f"Downloaded {len(response.content)} bytes from {url}")
        return response.content
