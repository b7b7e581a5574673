"""Web search through the DuckDuckGo instant-answer API."""

import asyncio
import logging
from typing import (
    Any,
    Dict,
    Iterable,
    List,
    Tuple,
)

import httpx
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
)

from replanner.core.schema import Message
from replanner.tools import register_tool
from replanner.tools.base import Tool

logger = logging.getLogger(__name__)

SEARCH_URL = "https://api.duckduckgo.com/"


class SearchInput(BaseModel):
    """Parameters accepted by :class:`DuckDuckGoSearchTool`."""

    model_config = ConfigDict(extra="forbid")

    query: str = Field(..., min_length=1, description="Search query.")
    max_results: int = Field(5, ge=1, le=20, description="Maximum number of results to return.")


class SearchResult(BaseModel):
    """One hit returned to the planner."""

    title: str
    description: str
    url: str


def _flatten_topics(topics: Iterable[Dict[str, Any]]) -> Iterable[Dict[str, Any]]:
    for topic in topics:
        if "Topics" in topic:  # category groups nest their entries one level deeper
            yield from _flatten_topics(topic["Topics"])
        else:
            yield topic


def parse_results(payload: Dict[str, Any], max_results: int) -> List[SearchResult]:
    """Turn an instant-answer payload into at most *max_results* :class:`SearchResult` objects."""
    results: List[SearchResult] = []
    if payload.get("AbstractText"):
        results.append(
            SearchResult(
                title=payload.get("Heading") or payload.get("AbstractSource") or "",
                description=payload["AbstractText"],
                url=payload.get("AbstractURL") or "",
            )
        )
    if payload.get("Answer"):
        results.append(
            SearchResult(title="Answer", description=str(payload["Answer"]), url="")
        )
    for topic in _flatten_topics(payload.get("RelatedTopics") or []):
        text = topic.get("Text")
        if not text:
            continue
        results.append(
            SearchResult(title=text.split(" - ")[0], description=text, url=topic.get("FirstURL", ""))
        )
    return results[:max_results]


@register_tool("duckduckgo")
class DuckDuckGoSearchTool(Tool):
    """Search the web for factual information."""

    name = "DuckDuckGo"
    description = (
        "Search for online trends, news, current events, real-time information, "
        "or research topics."
    )
    input_model = SearchInput

    def __init__(self, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self._transport = transport

    async def _run(
        self, params: SearchInput, signal: asyncio.Event | None, memory: Tuple[Message, ...]
    ) -> List[SearchResult]:
        async with httpx.AsyncClient(timeout=30.0, transport=self._transport) as client:
            resp = await client.get(
                SEARCH_URL,
                params={"q": params.query, "format": "json", "no_html": 1, "skip_disambig": 1},
            )
            resp.raise_for_status()
            payload = resp.json()

        results = parse_results(payload, params.max_results)
        logger.debug("Search '%s' returned %d results", params.query, len(results))
        return results
