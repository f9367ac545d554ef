# price_agent/matching/print_options.py

"""Resolve a free-text print request to a recorded print option."""

import logging

from price_agent.matching.text import (
    normalise,
    normalise_color_notation,
    requested_color_notation,
)
from price_agent.models.price_tier import DeliveryClass
from price_agent.pricing.fallback import first_resolved
from price_agent.storage.catalog_store import CatalogStore

logger = logging.getLogger("price_agent.matching")

# (trigger phrases, target substring), evaluated top to bottom.  The
# first rule that fires and has a recorded option containing its
# target wins.
PRINT_OPTION_RULES: tuple[tuple[tuple[str, ...], str], ...] = (
    (("no print", "plain", "blank", "without print"), "no print"),
    (("1 color", "one color", "single color", "1 colour"), "1c x 0c"),
    (("2 color", "two color", "2 colour"), "2c x 0c"),
    (("full color", "full colour", "multicolor"), "heat transfer"),
    (("heat transfer",), "heat transfer"),
    (("silkscreen", "silk screen", "screen print"), "silkscreen"),
    (("embroidery", "embroid"), "embroidery"),
    (("laser", "engrave", "engraving"), "laser"),
    (("uv print", "uv"), "uv"),
    (("deboss", "debossing"), "deboss"),
)


def honours_color_notation(option: str, user_text: str | None) -> bool:
    """False when ``user_text`` names a colour notation ``option`` lacks."""
    wanted = requested_color_notation(user_text)
    if wanted is None:
        return True
    return wanted in normalise_color_notation(option)


def _find(options: list[str], target: str) -> str | None:
    """First option containing ``target``, ignoring case."""
    for option in options:
        if target in normalise(option):
            return option
    return None


def _by_exact_text(options: list[str], text: str) -> str | None:
    for option in options:
        if normalise(option) == text:
            return option
    return None


def _by_color_notation(options: list[str], text: str) -> str | None:
    wanted = requested_color_notation(text)
    if wanted is None:
        return None
    for option in options:
        if wanted in normalise_color_notation(option):
            return option
    return None


def _by_keyword_rules(options: list[str], text: str) -> str | None:
    for triggers, target in PRINT_OPTION_RULES:
        if not any(trigger in text for trigger in triggers):
            continue
        found = _find(options, target)
        if found is not None:
            return found
    return None


def _by_substring(options: list[str], text: str) -> str | None:
    for option in options:
        folded = normalise(option)
        if text in folded or folded in text:
            return option
    return None


class PrintOptionResolver:
    """Pick one of a product's recorded print options for a request.

    Always returns a recorded option when any exists: callers that do
    not care about print still get a price.  Callers that asked for an
    explicit colour notation should check :func:`honours_color_notation`
    on the result.
    """

    def __init__(self, store: CatalogStore) -> None:
        self._store = store

    def resolve(
        self,
        product_name: str,
        user_text: str | None,
        delivery_class: DeliveryClass = DeliveryClass.LOCAL,
    ) -> str | None:
        options = self._store.list_print_options(
            product_name, delivery_class,
        )
        if not options:
            logger.debug(
                "No print options for %s (%s)",
                product_name, delivery_class.value,
            )
            return None

        text = normalise(user_text or "")
        if not text:
            return options[0]

        chosen = first_resolved(
            lambda: _by_color_notation(options, text),
            lambda: _by_exact_text(options, text),
            lambda: _by_keyword_rules(options, text),
            lambda: _by_substring(options, text),
        )
        if chosen is None:
            logger.debug(
                "Print request %r matched nothing for %s, "
                "defaulting to %r",
                user_text, product_name, options[0],
            )
            return options[0]

        logger.debug(
            "Print request %r resolved to %r for %s (%s)",
            user_text, chosen, product_name, delivery_class.value,
        )
        return chosen
