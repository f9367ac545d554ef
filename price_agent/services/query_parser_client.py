# price_agent/services/query_parser_client.py

"""HTTP client for the text-understanding service.

Sends a pricing question to an Anthropic-style messages endpoint and
turns the JSON it answers with into a :class:`ParsedQuery`.  This is
the access layer: it owns timeouts and transport retries, the engine
never retries.
"""

import json
import logging
import re
import time
from typing import Any

from curl_cffi import CurlError
from curl_cffi import requests as curl_requests

from price_agent.config.settings import Settings
from price_agent.errors import CollaboratorUnavailable, ParseFailure
from price_agent.models.quote import ParsedQuery

logger = logging.getLogger("price_agent.parser")

SYSTEM_PROMPT = """\
You are a query parser for a corporate gifts pricing system.

Extract the following from the user's query:
- product: The product name or type (e.g., "canvas tote bag", "tumbler", "notebook")
- quantity: The number of items requested (null if not specified)
- print_option: The FULL printing method including color count. Examples:
  - "silkscreen 1c x 0c" means 1 color front, 0 colors back
  - "silkscreen 2c x 1c" means 2 colors front, 1 color back
  - "heat transfer" for full color heat transfer
  - "no print" for blank items
  - Keep the exact color notation like "1c x 0c", "2c x 2c" if mentioned
- lead_time: The delivery preference if mentioned ("local", "overseas", "urgent", "standard")

Respond in JSON format only:
{
  "product": "...",
  "quantity": null or number,
  "print_option": null or "..." (include the full option like "silkscreen 1c x 0c"),
  "lead_time": null or "..."
}"""

_FENCE_OPEN_RE = re.compile(r"^```(?:json)?\s*", re.IGNORECASE)
_FENCE_CLOSE_RE = re.compile(r"\s*```\s*$")

# Status codes worth another attempt
_RETRYABLE_STATUS = frozenset({429, 500, 502, 503, 504, 529})


def strip_code_fence(text: str) -> str:
    """Remove a surrounding markdown code fence, if any."""
    text = text.strip()
    text = _FENCE_OPEN_RE.sub("", text)
    return _FENCE_CLOSE_RE.sub("", text).strip()


def parse_model_output(text: str) -> ParsedQuery:
    """Decode the model's JSON answer.

    Raises:
        ParseFailure: not a JSON object, or no product in it.
    """
    cleaned = strip_code_fence(text)
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as exc:
        raise ParseFailure(
            f"Query parser returned invalid JSON: {cleaned[:80]!r}"
        ) from exc
    if not isinstance(data, dict):
        raise ParseFailure("Query parser did not return a JSON object")

    parsed = ParsedQuery.from_dict(data)
    if parsed.product is None:
        raise ParseFailure("Could not identify a product in the query")
    return parsed


class QueryParserClient:
    """Turns a sentence into ``{product, quantity, print_option, lead_time}``."""

    def __init__(self) -> None:
        self.settings = Settings()
        self.session = curl_requests.Session(
            impersonate=self.settings.IMPERSONATE_BROWSER
        )

    @property
    def configured(self) -> bool:
        return bool(self.settings.PARSER_API_KEY)

    def _payload(self, text: str) -> dict[str, Any]:
        return {
            "model": self.settings.PARSER_MODEL,
            "max_tokens": self.settings.PARSER_MAX_TOKENS,
            "system": SYSTEM_PROMPT,
            "messages": [{"role": "user", "content": text}],
        }

    def _headers(self) -> dict[str, str]:
        return {
            "x-api-key": self.settings.PARSER_API_KEY,
            "anthropic-version": self.settings.PARSER_API_VERSION,
            "content-type": "application/json",
        }

    def _post(self, text: str) -> dict[str, Any]:
        """POST with retries on transport errors and retryable statuses."""
        last_error = "no attempt made"
        for attempt in range(self.settings.MAX_RETRIES):
            try:
                resp = self.session.post(
                    self.settings.PARSER_API_URL,
                    headers=self._headers(),
                    json=self._payload(text),
                    timeout=self.settings.REQUEST_TIMEOUT,
                )
            except (CurlError, OSError) as exc:
                last_error = str(exc)
                logger.warning(
                    "Parser request error on attempt %d: %s",
                    attempt + 1,
                    exc,
                    exc_info=True,
                )
                time.sleep(self.settings.RETRY_DELAY * (attempt + 1))
                continue

            if resp.status_code == 200:
                try:
                    body: dict[str, Any] = resp.json()
                except ValueError as exc:
                    raise CollaboratorUnavailable(
                        "Query parser returned a non-JSON body"
                    ) from exc
                return body

            last_error = f"HTTP {resp.status_code}"
            logger.warning(
                "Parser HTTP %d on attempt %d",
                resp.status_code,
                attempt + 1,
            )
            if resp.status_code not in _RETRYABLE_STATUS:
                break
            time.sleep(self.settings.RETRY_DELAY * (attempt + 1))

        raise CollaboratorUnavailable(
            f"Query parser unavailable: {last_error}"
        )

    def parse(self, text: str) -> ParsedQuery:
        """Extract a structured query from free text.

        Raises:
            CollaboratorUnavailable: no API key, or the service could
                not be reached.
            ParseFailure: the answer held no usable product.
        """
        if not self.configured:
            raise CollaboratorUnavailable(
                "Query parser API key is not configured"
            )
        if not text or not text.strip():
            raise ParseFailure("Empty query")

        body = self._post(text.strip())
        blocks = body.get("content") or []
        answer = "".join(
            b.get("text", "")
            for b in blocks
            if isinstance(b, dict) and b.get("type", "text") == "text"
        )
        parsed = parse_model_output(answer)
        logger.info("Parsed %r -> %s", text, parsed.to_dict())
        return parsed
