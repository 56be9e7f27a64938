"""Pytest configuration and fixtures."""

import asyncio
import json
import os
from collections.abc import Callable
from typing import Any, Optional, Union

import httpx
import pytest

# Disable LLM rate limiting before any client is created
os.environ["LLM_RATE_LIMIT_INTERVAL"] = "0"

from geo_scope.config import Settings
from geo_scope.content import SafeUrlFetcher
from geo_scope.errors import ProviderError
from geo_scope.llm import Engine, EngineRegistry, LLMClient
from geo_scope.types import Annotation, ChatResponse

Responder = Union[str, Exception, Callable[[str, Optional[str]], Any], None]
SearchResponder = Union[ChatResponse, Exception, Callable[[str], Any], None]


class FakeLLMClient(LLMClient):
    """Scripted LLM client that records every call."""

    DEFAULT_RATE_LIMIT_INTERVAL = 0.0
    MODEL = "fake-model"

    def __init__(
        self,
        responder: Responder = None,
        search: SearchResponder = None,
        *,
        searchable: bool = False,
        delay: float = 0.0,
        label: str = "Fake",
    ):
        super().__init__()
        self.responder = responder
        self.search = search
        self.searchable = searchable
        self.delay = delay
        self.label = label
        self.calls: list[dict[str, Any]] = []
        self.search_calls: list[str] = []

    async def acall_standard(
        self,
        prompt: str,
        *,
        system: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> str:
        self.calls.append(
            {"prompt": prompt, "system": system, "temperature": temperature, "max_tokens": max_tokens}
        )
        if self.delay:
            await asyncio.sleep(self.delay)
        response = self.responder(prompt, system) if callable(self.responder) else self.responder
        if isinstance(response, Exception):
            raise response
        if response is None:
            raise ProviderError(f"{self.label}: no scripted response")
        return response

    async def acall_with_search(self, prompt: str) -> ChatResponse:
        self.search_calls.append(prompt)
        if self.delay:
            await asyncio.sleep(self.delay)
        if not self.searchable:
            return await super().acall_with_search(prompt)
        response = self.search(prompt) if callable(self.search) else self.search
        if isinstance(response, Exception):
            raise response
        return response or ChatResponse(text="")

    @property
    def supports_web_search(self) -> bool:
        return self.searchable

    @property
    def name(self) -> str:
        return f"{self.label} ({self.MODEL})"


def search_response(text: str, *urls: str) -> ChatResponse:
    """Build a search-augmented response with one annotation per URL."""
    return ChatResponse(
        text=text,
        annotations=[Annotation(url=u, title=f"Title {i}") for i, u in enumerate(urls, 1)],
    )


def query_json(topic: str = "GEO", *queries: str) -> str:
    """Build a query generation response."""
    items = queries or ("What is GEO?", "How to do GEO?", "GEO vs SEO?")
    types = ["definition", "howto", "comparison"]
    return json.dumps(
        {"topic": topic, "queries": [{"query": q, "type": types[i % 3]} for i, q in enumerate(items)]},
        ensure_ascii=False,
    )


def pipeline_responder(answer: str, queries: Optional[str] = None, passages: Optional[list[str]] = None):
    """Route standard calls by prompt shape: query generation, answer, or source passages."""
    generated = passages or [f"Reference passage {i} about the topic." for i in range(1, 5)]

    def respond(prompt: str, system: Optional[str]) -> str:
        if system and "Source 1-" in system:
            return answer
        if system and '"queries"' in system:
            return queries or query_json()
        return json.dumps(generated)

    return respond


def make_registry(**clients: LLMClient) -> EngineRegistry:
    """Build a registry from engine-name keyword arguments."""
    return EngineRegistry({Engine(name): client for name, client in clients.items()})


ARTICLE_HTML = (
    "<html><head><title>GEO</title><script>var x = 1;</script></head><body>"
    "<nav>Home | About</nav>"
    "<h1>Generative Engine Optimization</h1>"
    "<p>Generative engine optimization improves how often AI search answers cite a page. "
    "According to a 2024 study, adding statistics raised visibility by 40%.</p>"
    "<footer>Copyright</footer></body></html>"
)


async def public_resolver(hostname: str) -> list[str]:
    return ["93.184.216.34"]


async def loopback_resolver(hostname: str) -> list[str]:
    return ["127.0.0.1"]


def html_transport(routes: Optional[dict[str, httpx.Response]] = None) -> httpx.MockTransport:
    """Mock transport that serves ARTICLE_HTML unless a route overrides the URL."""
    routes = routes or {}

    def handler(request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        if url in routes:
            template = routes[url]
            return httpx.Response(template.status_code, headers=template.headers, content=template.content)
        return httpx.Response(200, headers={"content-type": "text/html; charset=utf-8"}, text=ARTICLE_HTML)

    return httpx.MockTransport(handler)


@pytest.fixture
def settings() -> Settings:
    """Settings with short timeouts."""
    return Settings(
        engine_timeout=0.2,
        fallback_timeout=0.2,
        fetch_timeout=2.0,
        fetch_max_bytes=100_000,
        fetch_max_redirects=3,
        skip_dns_ssrf_check=False,
    )


@pytest.fixture
def fetcher(settings: Settings) -> SafeUrlFetcher:
    """Fetcher serving ARTICLE_HTML with public DNS."""
    return SafeUrlFetcher(settings, transport=html_transport(), resolver=public_resolver)
