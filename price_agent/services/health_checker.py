# price_agent/services/health_checker.py

"""Readiness probes for the catalog store and the query parser."""

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

from price_agent.errors import PriceAgentError
from price_agent.services.query_parser_client import QueryParserClient
from price_agent.storage.catalog_store import CatalogStore

logger = logging.getLogger("price_agent.health")

_SLOW_MS = 2000


@dataclass
class HealthResult:
    """Result of a single component health check."""

    component: str
    status: str  # "ok", "slow", "down"
    latency_ms: float
    message: str


def _timed(component: str, probe: Callable[[], str]) -> HealthResult:
    """Run ``probe`` and classify it by outcome and latency."""
    start = time.monotonic()
    try:
        message = probe()
    except PriceAgentError as exc:
        return HealthResult(
            component=component,
            status="down",
            latency_ms=(time.monotonic() - start) * 1000,
            message=str(exc)[:80],
        )
    elapsed_ms = (time.monotonic() - start) * 1000
    if elapsed_ms > _SLOW_MS:
        return HealthResult(
            component=component,
            status="slow",
            latency_ms=elapsed_ms,
            message="High latency",
        )
    return HealthResult(
        component=component,
        status="ok",
        latency_ms=elapsed_ms,
        message=message,
    )


def probe_store(store: CatalogStore) -> HealthResult:
    """Count products to prove the catalog answers reads."""
    return _timed(
        "catalog",
        lambda: f"{store.count_products()} products",
    )


def probe_parser(parser: QueryParserClient | None) -> HealthResult:
    """Check the parser is configured; no request is sent."""
    if parser is None:
        return HealthResult(
            component="parser",
            status="down",
            latency_ms=0.0,
            message="No query parser configured",
        )
    if not parser.configured:
        return HealthResult(
            component="parser",
            status="down",
            latency_ms=0.0,
            message="API key is not configured",
        )
    return HealthResult(
        component="parser",
        status="ok",
        latency_ms=0.0,
        message=parser.settings.PARSER_MODEL,
    )


class HealthChecker:
    """Runs the component probes concurrently."""

    def __init__(
        self,
        store: CatalogStore,
        parser: QueryParserClient | None = None,
    ) -> None:
        self.store = store
        self.parser = parser

    async def check_all(self) -> list[HealthResult]:
        """Probe every component concurrently."""
        results: list[HealthResult] = list(
            await asyncio.gather(
                asyncio.to_thread(probe_store, self.store),
                asyncio.to_thread(probe_parser, self.parser),
            )
        )
        for r in results:
            logger.info(
                "Health check %s: %s (%.0fms) %s",
                r.component,
                r.status,
                r.latency_ms,
                r.message,
            )
        return results
