"""
Stream Collector

Aggregates the server-sent event stream of a generation call into the text of
one output column.
"""

import json
from typing import AsyncIterable, List

import httpx

from src.exceptions.review_exceptions import (
    GenerationTransportException,
    StreamDecodeException,
)
from src.models.schemas.generation import StreamChunk
from src.utils.logging import get_logger

logger = get_logger(__name__)

DATA_PREFIX = "data: "
DONE_SENTINEL = "[DONE]"


async def collect_column_text(lines: AsyncIterable[str], output_column: str) -> str:
    """
    Concatenate the message contents of every chunk tagged with `output_column`.

    Lines without the data prefix are keep-alives and are ignored. A
    `[DONE]` line ends reading; so does the end of the stream. Chunks for
    other columns, or whose fields have unexpected types, are skipped.

    Raises:
        StreamDecodeException: If a data line is not valid JSON or not an object. Nothing
            aggregated before the bad line is returned.
    """
    fragments: List[str] = []
    matched_chunks = 0

    async for line in lines:
        if not line.startswith(DATA_PREFIX):
            continue

        payload = line[len(DATA_PREFIX):]
        if payload == DONE_SENTINEL:
            break

        try:
            decoded = json.loads(payload)
        except json.JSONDecodeError as e:
            raise StreamDecodeException(payload, str(e)) from e

        # A null payload carries no chunk
        if decoded is None:
            continue
        if not isinstance(decoded, dict):
            raise StreamDecodeException(payload, f"expected a JSON object, got {type(decoded).__name__}")

        chunk = StreamChunk.from_payload(decoded)
        if chunk.output_column_name != output_column:
            continue

        matched_chunks += 1
        fragments.extend(chunk.fragments)

    logger.debug(f"Collected {matched_chunks} chunks for column {output_column}")
    return "".join(fragments)


async def collect_response_text(response: httpx.Response, output_column: str) -> str:
    """
    Read a streamed generation response and return the text for `output_column`.

    The response is closed on every exit path.

    Raises:
        StreamDecodeException: If a data line cannot be decoded
        GenerationTransportException: If reading the stream fails
    """
    try:
        return await collect_column_text(response.aiter_lines(), output_column)
    except (httpx.TransportError, httpx.StreamError) as e:
        raise GenerationTransportException("reading response stream", str(e)) from e
    finally:
        await response.aclose()
