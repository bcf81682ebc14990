import json
from typing import AsyncIterator, Iterable, List

import httpx
import pytest

from src.core.review_config import ReviewLimits, ReviewSettings
from src.models.schemas.github import PullRequestRef


def data_line(column: str, *contents: str) -> str:
    """A `data: ` line carrying one chunk for `column`."""
    chunk = {
        "output_column_name": column,
        "choices": [{"message": {"content": c}} for c in contents],
    }
    return f"data: {json.dumps(chunk)}"


async def iter_lines(lines: Iterable[str]) -> AsyncIterator[str]:
    for line in lines:
        yield line


class TrackingStream(httpx.AsyncByteStream):
    """Byte stream that records whether it was closed and can fail mid-read."""

    def __init__(self, chunks: List[bytes], error: Exception = None):
        self.chunks = chunks
        self.error = error
        self.closed = False

    async def __aiter__(self):
        for chunk in self.chunks:
            yield chunk
        if self.error is not None:
            raise self.error

    async def aclose(self) -> None:
        self.closed = True


def sse_body(lines: Iterable[str]) -> bytes:
    return ("\n".join(lines) + "\n").encode("utf-8")


@pytest.fixture
def pull_request():
    return PullRequestRef(owner="octo", repo="widgets", number=7)


@pytest.fixture
def review_config():
    return ReviewSettings(limits=ReviewLimits(analysis_timeout_seconds=5))
