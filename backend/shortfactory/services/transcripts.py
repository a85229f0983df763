"""Transcript acquisition through an Apify YouTube transcript actor.

Starts an actor run, polls it until it settles (bounded by
``poll_max_attempts * poll_interval``), then downloads the first dataset
item. This polling budget is separate from the provider retry policy.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, Protocol

import httpx
from pydantic import BaseModel

from shortfactory.config import TranscriptConfig
from shortfactory.errors import NoCredentials, TerminalProviderError
from shortfactory.schemas.stage_payloads import TranscriptMetadata

logger = logging.getLogger(__name__)

APIFY_BASE_URL = "https://api.apify.com/v2"

_FINAL_STATES = {"SUCCEEDED", "FAILED", "ABORTED", "TIMED-OUT"}


class TranscriptResult(BaseModel):
    transcript: str
    metadata: TranscriptMetadata


class TranscriptProvider(Protocol):
    async def fetch(self, video_id: str) -> TranscriptResult:
        ...


class ApifyTranscriptProvider:
    """Apify client for the YouTube transcript actor."""

    def __init__(
        self,
        token: str,
        config: Optional[TranscriptConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if not token:
            raise NoCredentials("Apify token not configured")
        self._token = token
        self._config = config or TranscriptConfig()
        self._transport = transport
        self._sleep = sleep

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=APIFY_BASE_URL,
            params={"token": self._token},
            timeout=httpx.Timeout(60.0, connect=30.0),
            transport=self._transport,
        )

    async def fetch(self, video_id: str) -> TranscriptResult:
        """Fetch transcript and metadata for a YouTube video.

        Raises:
            TerminalProviderError: If the run fails, times out, or yields nothing
        """
        actor = self._config.actor_id
        async with self._client() as client:
            logger.info(f"Apify: starting transcript run for {video_id}")
            response = await client.post(
                f"/acts/{actor}/runs",
                json={
                    "youtube_url": f"https://www.youtube.com/watch?v={video_id}",
                    "language": self._config.language,
                    "include_transcript_text": True,
                },
            )
            response.raise_for_status()
            run = response.json()["data"]
            run = await self._wait_for_run(client, actor, run["id"])

            if run["status"] != "SUCCEEDED":
                raise TerminalProviderError(f"Apify run failed with status: {run['status']}")

            response = await client.get(f"/datasets/{run['defaultDatasetId']}/items")
            response.raise_for_status()
            items = response.json()

        if not items:
            raise TerminalProviderError(
                "No transcript found. The video may not have captions enabled."
            )
        return parse_transcript_item(items[0])

    async def _wait_for_run(self, client: httpx.AsyncClient, actor: str, run_id: str) -> dict:
        attempts = self._config.poll_max_attempts
        for attempt in range(1, attempts + 1):
            await self._sleep(self._config.poll_interval)
            response = await client.get(f"/acts/{actor}/runs/{run_id}")
            if response.is_error:
                logger.warning(f"Apify polling error (attempt {attempt}): HTTP {response.status_code}")
                continue
            run = response.json()["data"]
            if run["status"] in _FINAL_STATES:
                return run
            logger.debug(f"Apify run {run_id}: {run['status']} ({attempt}/{attempts})")

        timeout = attempts * self._config.poll_interval
        raise TerminalProviderError(f"Apify run timed out after {timeout:.0f}s")


def parse_transcript_item(item: dict) -> TranscriptResult:
    """Extract transcript text and metadata from an actor dataset item."""
    transcript = item.get("transcript_text") or ""
    if not transcript and isinstance(item.get("transcript"), list):
        transcript = " ".join(seg.get("text", "") for seg in item["transcript"]).strip()

    if not transcript and not item.get("title"):
        raise TerminalProviderError("Unknown or empty actor response format")

    view_count = item.get("viewCount")
    return TranscriptResult(
        transcript=transcript,
        metadata=TranscriptMetadata(
            title=item.get("title"),
            description=item.get("description"),
            view_count=int(view_count) if view_count is not None else None,
            published_at=item.get("date"),
            channel_name=item.get("channelName"),
            duration=str(item["duration"]) if item.get("duration") is not None else None,
        ),
    )
