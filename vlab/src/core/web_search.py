"""
Virtual Lab Assistant - Restricted Web Search
==============================================
Thin wrapper over the Tavily search API that only ever returns pages
from an allow-list of domains (``settings.WEB_SEARCH_DOMAINS``).

The chat pipeline calls it when the lab-document context is sparse.
Provider failures are logged and turned into an empty result list; a
missing web answer never fails a chat request.
"""

from __future__ import annotations

from typing import TypedDict
from urllib.parse import urlparse

from vlab.config.prompt_templates import WEB_CONTEXT_HEADER
from vlab.config.settings import settings
from vlab.src.utils.logger import get_logger

logger = get_logger(__name__)

_MAX_SNIPPET_CHARS = 800


class WebResult(TypedDict):
    title: str
    url: str
    content: str


def _host_allowed(url: str, domains: list[str]) -> bool:
    host = (urlparse(url).hostname or "").lower()
    return any(host == d or host.endswith("." + d) for d in domains)


class RestrictedWebSearch:
    """
    Domain-restricted web search.

    Parameters
    ----------
    api_key
        Tavily API key.
    domains
        Allowed domains; sub-domains are accepted.
    max_results
        Upper bound on returned results.
    client
        Optional pre-built client exposing ``search(query, ...)``.
    """

    __slots__ = ("_domains", "_max_results", "_client")

    def __init__(self, api_key: str, domains: list[str], max_results: int = 3, client: object | None = None) -> None:
        self._domains = [d.strip().lower() for d in domains if d.strip()]
        self._max_results = max_results
        if client is None:
            from tavily import TavilyClient

            client = TavilyClient(api_key=api_key)
        self._client = client


    @property
    def domains(self) -> list[str]:
        return list(self._domains)


    def search(self, query: str) -> list[WebResult]:
        """Return up to ``max_results`` allow-listed results for *query*."""
        try:
            response = self._client.search(query, max_results=self._max_results, include_domains=self._domains, search_depth="basic")  # type: ignore[attr-defined]
        except Exception:
            logger.exception("[WEB] Search provider call failed.")
            return []

        results: list[WebResult] = []
        for item in (response or {}).get("results", []) or []:
            url = str(item.get("url") or "").strip()
            if not url or not _host_allowed(url, self._domains):
                continue
            results.append({"title": str(item.get("title") or url).strip(), "url": url, "content": str(item.get("content") or "").strip()[:_MAX_SNIPPET_CHARS]})
            if len(results) >= self._max_results:
                break

        logger.info("[WEB] '%s' → %d allowed result(s).", query[:60], len(results))
        return results


def format_web_context(results: list[WebResult]) -> str:
    """Render web results as a prompt block; empty string when there are none."""
    if not results:
        return ""
    blocks = [f"[{i}] {r['title']} ({r['url']})\n{r['content']}" for i, r in enumerate(results, 1)]
    return WEB_CONTEXT_HEADER + "\n" + "\n\n".join(blocks)


def build_web_search() -> RestrictedWebSearch | None:
    """Create the configured web search, or None when disabled / keyless."""
    if not settings.web_search_active:
        logger.info("[WEB] Restricted web search disabled.")
        return None
    return RestrictedWebSearch(settings.TAVILY_API_KEY.get_secret_value(), settings.WEB_SEARCH_DOMAINS, settings.WEB_SEARCH_MAX_RESULTS)  # type: ignore[union-attr]
