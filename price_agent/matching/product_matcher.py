# price_agent/matching/product_matcher.py

"""Tiered product name matching: exact, case-insensitive, then fuzzy."""

import logging

from price_agent.config.settings import Settings
from price_agent.matching.text import (
    normalise,
    significant_words,
    word_overlap_score,
)
from price_agent.models.product import Product
from price_agent.models.quote import MatchConfidence, MatchResult
from price_agent.storage.catalog_store import CatalogStore

logger = logging.getLogger("price_agent.matching")


class ProductMatcher:
    """Map a free-text product phrase to catalog products.

    Tiers are tried in strict priority and the first tier that yields
    anything ends the search, so a short common word can never pull in
    loose matches when an exact name exists.
    """

    def __init__(self, store: CatalogStore) -> None:
        self._store = store

    def match(
        self,
        query: str,
        limit: int = Settings.MATCH_LIMIT,
        category: str | None = None,
    ) -> list[MatchResult]:
        """Return matches ordered by confidence, then catalog order."""
        if not query or not query.strip():
            return []
        text = query.strip()

        exact = self._store.find_products_by_name(
            text, category=category, limit=limit,
        )
        if exact:
            logger.debug("Exact match for %r: %d", text, len(exact))
            return self._wrap(exact, MatchConfidence.EXACT)

        insensitive = self._store.find_products_by_name(
            text, case_sensitive=False, category=category, limit=limit,
        )
        if insensitive:
            logger.debug(
                "Case-insensitive match for %r: %d",
                text, len(insensitive),
            )
            return self._wrap(
                insensitive, MatchConfidence.EXACT_INSENSITIVE,
            )

        return self._fuzzy(text, limit, category)

    def _fuzzy(
        self, text: str, limit: int, category: str | None,
    ) -> list[MatchResult]:
        words = significant_words(text)
        terms = words or [normalise(text)]
        candidates = self._store.search_products(
            terms, match_all=True, category=category,
        )

        if words:
            accepted: list[Product] = []
            for product in candidates:
                score = word_overlap_score(words, product.name)
                if score < Settings.FUZZY_OVERLAP_THRESHOLD:
                    logger.debug(
                        "Rejected fuzzy candidate %r for %r "
                        "(overlap %.2f)",
                        product.name, text, score,
                    )
                    continue
                accepted.append(product)
        else:
            accepted = candidates

        accepted = accepted[:limit]
        logger.debug(
            "Fuzzy match for %r (terms=%s): %d of %d candidates",
            text, terms, len(accepted), len(candidates),
        )
        return self._wrap(accepted, MatchConfidence.FUZZY)

    def suggest(
        self,
        query: str,
        limit: int = Settings.SUGGESTION_LIMIT,
    ) -> list[str]:
        """Loose "did you mean" names: any significant word, unvalidated."""
        text = normalise(query or "")
        if len(text) < Settings.MIN_SUGGESTION_LENGTH:
            return []
        terms = significant_words(text)
        if text not in terms:
            terms.append(text)
        found = self._store.search_products(
            terms, match_all=False, limit=limit,
        )
        return [p.name for p in found]

    @staticmethod
    def _wrap(
        products: list[Product], confidence: MatchConfidence,
    ) -> list[MatchResult]:
        return [MatchResult(product=p, confidence=confidence) for p in products]
