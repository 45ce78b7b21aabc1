"""
Resilient invoker: wraps the model call with a per-tier rate gate,
permanent model-tier degradation on rate limits, and bounded exponential
backoff.  Whatever comes back is parsed into review suggestions; failures
degrade to an empty list instead of raising.
"""

import json
import math
import threading
import time
from typing import Callable

from .cli_display import log
from .llm.base import ModelClient, ModelCallError
from .review.position_resolver import ReviewSuggestion

DEFAULT_RPM = 5
SINGLE_MAX_OUTPUT_TOKENS = 8192
BATCH_MAX_OUTPUT_TOKENS = 16384


def strip_code_fence(text: str) -> str:
    """Remove a leading ```json / ``` fence and a trailing ``` fence."""
    text = text.strip()
    if text.startswith("```json"):
        text = text[len("```json"):]
    elif text.startswith("```"):
        text = text[len("```"):]
    if text.endswith("```"):
        text = text[:-3]
    return text.strip()


def parse_review_response(text: str | None) -> list[ReviewSuggestion]:
    """Parse a ``{"reviews": [{lineContent, reviewComment}]}`` payload.

    Malformed payloads yield an empty list; entries missing either field
    are dropped.
    """
    if not text or not text.strip():
        return []

    cleaned = strip_code_fence(text)
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        log.warning(f"[Invoker] Response is not valid JSON: {e}")
        return []

    reviews = data.get("reviews") if isinstance(data, dict) else None
    if not isinstance(reviews, list):
        log.warning("[Invoker] Invalid response format: no 'reviews' list")
        return []

    suggestions: list[ReviewSuggestion] = []
    for entry in reviews:
        if not isinstance(entry, dict):
            continue
        line_content = entry.get("lineContent")
        comment = entry.get("reviewComment")
        if not isinstance(line_content, str) or not isinstance(comment, str):
            continue
        if not line_content or not comment:
            continue
        suggestions.append(ReviewSuggestion(line_content=line_content, comment=comment))
    return suggestions


def rate_limit_interval(rpm: int) -> float:
    """Seconds between requests for a requests-per-minute budget."""
    return math.ceil(60000 / rpm) / 1000


class ResilientInvoker:
    """Serialised, rate-limited access to one model endpoint.

    Model tiers are ordered from most to least rate-limited (ascending
    requests-per-minute).  The current tier only ever moves down that list.
    """

    def __init__(self, client: ModelClient, model: str,
                 tiers: dict[str, int] | None = None,
                 max_retries: int = 3, backoff_base: float = 1.0,
                 backoff_cap: float = 30.0,
                 sleep: Callable[[float], None] = time.sleep,
                 clock: Callable[[], float] = time.monotonic):
        self.client = client
        # Tiers without a positive budget cannot be scheduled
        self.tiers = {name: rpm for name, rpm in (tiers or {}).items() if rpm > 0}
        # sorted() is stable: equal budgets keep table order
        self.hierarchy = sorted(self.tiers, key=lambda name: self.tiers[name])
        self.max_retries = max_retries
        self.backoff_base = backoff_base
        self.backoff_cap = backoff_cap
        self._sleep = sleep
        self._clock = clock
        self._tier_lock = threading.Lock()
        self._current_model = model
        self._last_request_time: float | None = None
        self.rate_limit_delay = 0.0
        self._update_rate_limit_delay()

        log.info(
            f"[Invoker] Using model {self._current_model} "
            f"({self.current_rpm} RPM, {self.rate_limit_delay:.1f}s between requests)"
        )

    @classmethod
    def from_config(cls, client: ModelClient, cfg, **kwargs) -> "ResilientInvoker":
        return cls(
            client,
            model=cfg.MODEL,
            tiers=cfg.MODEL_TIERS,
            max_retries=cfg.MAX_RETRIES,
            backoff_base=cfg.BACKOFF_BASE,
            backoff_cap=cfg.BACKOFF_CAP,
            **kwargs,
        )

    @property
    def current_model(self) -> str:
        return self._current_model

    @property
    def current_rpm(self) -> int:
        return self.tiers.get(self._current_model, DEFAULT_RPM)

    def _update_rate_limit_delay(self) -> None:
        self.rate_limit_delay = rate_limit_interval(self.current_rpm)

    # ── Tier degradation ──

    def _next_lower_model(self, model: str) -> str | None:
        if model not in self.hierarchy:
            return None
        index = self.hierarchy.index(model)
        if index == len(self.hierarchy) - 1:
            return None
        return self.hierarchy[index + 1]

    def derank(self, from_model: str | None = None) -> bool:
        """Move to the next less rate-limited tier.

        *from_model* makes this a compare-and-set: nothing happens if the
        tier already changed since the caller observed it.
        """
        with self._tier_lock:
            observed = from_model or self._current_model
            if observed != self._current_model:
                return True
            next_model = self._next_lower_model(self._current_model)
            if not next_model:
                log.warning(
                    f"[Invoker] Already using the lowest model "
                    f"({self._current_model}), cannot derank further"
                )
                return False

            old_model = self._current_model
            self._current_model = next_model
            self._update_rate_limit_delay()

        log.warning(f"[Invoker] Deranked from {old_model} to {next_model} due to rate limits")
        log.info(
            f"[Invoker] New rate limit: {self.current_rpm} RPM "
            f"({self.rate_limit_delay:.1f}s delay)"
        )
        return True

    # ── Rate gate ──

    def _enforce_rate_limit(self) -> None:
        if self._last_request_time is not None:
            elapsed = self._clock() - self._last_request_time
            if elapsed < self.rate_limit_delay:
                wait = self.rate_limit_delay - elapsed
                log.debug(f"[Invoker] Rate limiting: waiting {wait:.2f}s before next request")
                self._sleep(wait)
        self._last_request_time = self._clock()

    # ── Public entry point ──

    def review(self, prompt: str, batch: bool = False) -> list[ReviewSuggestion]:
        """Send *prompt* and return the parsed suggestions.

        Rate-limit and server errors are retried with backoff; the first
        rate limit of a request switches to a lower tier instead.  Exhausted
        retries and non-retryable errors return an empty list.
        """
        kind = "batch" if batch else "single"
        max_output_tokens = BATCH_MAX_OUTPUT_TOKENS if batch else SINGLE_MAX_OUTPUT_TOKENS
        attempt = 0
        deranked = False

        while True:
            self._enforce_rate_limit()
            model = self._current_model
            log.info(f"[Invoker] Sending {kind} prompt to {model} (attempt {attempt + 1})")
            try:
                text = self.client.generate(prompt, model=model,
                                            max_output_tokens=max_output_tokens)
            except ModelCallError as e:
                log.error(f"[Invoker] Error calling {model} (attempt {attempt + 1}): {e}")

                if not e.is_retryable:
                    log.error(f"[Invoker] Non-retryable error ({e.status}). Skipping this request.")
                    return []

                if e.is_rate_limit and attempt == 0 and not deranked and self.derank(model):
                    deranked = True
                    log.info(f"[Invoker] Retrying with deranked model: {self._current_model}")
                    continue

                error_type = "Rate limit" if e.is_rate_limit else "Server error"
                if attempt >= self.max_retries:
                    log.error(
                        f"[Invoker] Max retries exceeded for {error_type.lower()}. "
                        f"Skipping this request."
                    )
                    return []

                delay = min(self.backoff_base * (2 ** attempt), self.backoff_cap)
                log.warning(
                    f"[Invoker] {error_type} ({e.status}). Retrying in {delay:.1f}s... "
                    f"({attempt + 1}/{self.max_retries})"
                )
                self._sleep(delay)
                attempt += 1
                continue
            except Exception as e:
                log.error(f"[Invoker] Unexpected error calling {model}: {e}. Skipping this request.")
                return []

            if not text or not text.strip():
                log.warning("[Invoker] No response text received from model")
                return []

            log.debug(f"[Invoker] Response received: {text[:100]}...")
            return parse_review_response(text)
