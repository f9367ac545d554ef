# price_agent/errors.py

"""Exception taxonomy for price_agent.

Matching ambiguity (no product, no price) is *data* and travels on
:class:`~price_agent.models.quote.QuoteResponse`.  Only the failures
below are raised.
"""


class PriceAgentError(Exception):
    """Base class for all price_agent errors."""


class ParseFailure(PriceAgentError):
    """The text-understanding service could not extract a product."""


class InvalidInput(PriceAgentError):
    """A structured request is missing or has malformed fields."""


class StoreUnavailable(PriceAgentError):
    """The catalog store failed to answer a read."""


class CollaboratorUnavailable(PriceAgentError):
    """The text-understanding service is unreachable or unconfigured."""
