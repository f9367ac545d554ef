# price_agent/matching/text.py

"""Text normalisation shared by product and print option matching."""

import re

from price_agent.config.settings import Settings

_COLOR_NOTATION_RE = re.compile(r"(\d)c\s*x\s*(\d)c", re.IGNORECASE)


def normalise(text: str) -> str:
    """Casefold and trim."""
    return text.strip().casefold()


def significant_words(text: str) -> list[str]:
    """Casefolded whitespace tokens long enough to carry meaning.

    Short tokens ("a", "of", "2c") are dropped.  Order is kept and
    duplicates removed.
    """
    words: list[str] = []
    for word in normalise(text).split():
        if len(word) >= Settings.SIGNIFICANT_WORD_MIN_LENGTH and word not in words:
            words.append(word)
    return words


def word_overlap_score(query_words: list[str], name: str) -> float:
    """Fraction of ``query_words`` overlapping some word of ``name``.

    Two words overlap when either contains the other.
    """
    if not query_words:
        return 0.0
    name_words = normalise(name).split()
    hits = sum(
        1
        for qw in query_words
        if any(qw in nw or nw in qw for nw in name_words)
    )
    return hits / len(query_words)


def normalise_color_notation(text: str) -> str:
    """Rewrite every ``2C X 1c``-style notation as ``2c x 1c``, casefolded."""
    return _COLOR_NOTATION_RE.sub(
        lambda m: f"{m.group(1)}c x {m.group(2)}c", normalise(text),
    )


def requested_color_notation(text: str | None) -> str | None:
    """The first front/back colour notation in ``text``, normalised."""
    if not text:
        return None
    match = _COLOR_NOTATION_RE.search(text)
    if match is None:
        return None
    return f"{match.group(1)}c x {match.group(2)}c"
