"""Apify transcript provider against a mocked HTTP transport."""

import httpx
import pytest

from shortfactory.config import TranscriptConfig
from shortfactory.errors import NoCredentials, TerminalProviderError
from shortfactory.services.transcripts import ApifyTranscriptProvider, parse_transcript_item


class _Sleeps:
    def __init__(self):
        self.delays = []

    async def __call__(self, seconds):
        self.delays.append(seconds)


def _apify(statuses, items):
    """Mock Apify API: run polls walk through ``statuses``, then the dataset returns ``items``."""
    requests = []
    polls = iter(statuses)

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        path = request.url.path
        if request.method == "POST" and path.endswith("/runs"):
            return httpx.Response(201, json={"data": {"id": "run-1", "status": "READY"}})
        if path.endswith("/runs/run-1"):
            status = next(polls)
            if status == 500:
                return httpx.Response(500, json={"error": "boom"})
            return httpx.Response(200, json={"data": {"status": status, "defaultDatasetId": "ds-1"}})
        if path.endswith("/datasets/ds-1/items"):
            return httpx.Response(200, json=items)
        return httpx.Response(404)

    return httpx.MockTransport(handler), requests


def _provider(transport, sleep, **config):
    return ApifyTranscriptProvider(
        "apify-token",
        TranscriptConfig(poll_interval=0.5, poll_max_attempts=4, **config),
        transport=transport,
        sleep=sleep,
    )


ITEM = {
    "transcript_text": "Hello and welcome back.",
    "title": "A reference video",
    "viewCount": "98000",
    "channelName": "Somebody",
    "date": "2024-05-01",
    "duration": 61,
}


@pytest.mark.asyncio
async def test_fetch_polls_until_run_succeeds():
    transport, requests = _apify(["RUNNING", 500, "SUCCEEDED"], [ITEM])
    sleeps = _Sleeps()

    result = await _provider(transport, sleeps).fetch("abc123")

    assert result.transcript == "Hello and welcome back."
    assert result.metadata.view_count == 98000
    assert result.metadata.channel_name == "Somebody"
    assert result.metadata.duration == "61"
    assert sleeps.delays == [0.5, 0.5, 0.5]

    start = requests[0]
    assert start.url.params["token"] == "apify-token"
    assert b"watch?v=abc123" in start.content


@pytest.mark.asyncio
async def test_failed_run_is_terminal():
    transport, _ = _apify(["FAILED"], [])
    with pytest.raises(TerminalProviderError, match="FAILED"):
        await _provider(transport, _Sleeps()).fetch("abc123")


@pytest.mark.asyncio
async def test_polling_budget_runs_out():
    transport, _ = _apify(["RUNNING"] * 4, [])
    sleeps = _Sleeps()
    with pytest.raises(TerminalProviderError, match="timed out after 2s"):
        await _provider(transport, sleeps).fetch("abc123")
    assert len(sleeps.delays) == 4


@pytest.mark.asyncio
async def test_empty_dataset_means_no_captions():
    transport, _ = _apify(["SUCCEEDED"], [])
    with pytest.raises(TerminalProviderError, match="captions"):
        await _provider(transport, _Sleeps()).fetch("abc123")


def test_missing_token_raises():
    with pytest.raises(NoCredentials):
        ApifyTranscriptProvider("")


def test_parse_item_joins_segment_list():
    result = parse_transcript_item({
        "transcript": [{"text": "first"}, {"text": "second"}],
        "title": "Segments",
    })
    assert result.transcript == "first second"
    assert result.metadata.view_count is None


def test_parse_item_rejects_unknown_format():
    with pytest.raises(TerminalProviderError):
        parse_transcript_item({"unexpected": True})
