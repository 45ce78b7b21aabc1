import logging
import os
import sys
from datetime import datetime


class TokenTracker:
    """Global tracker for token usage and cost across all model calls."""

    def __init__(self, pricing: dict | None = None):
        self.total_prompt_tokens = 0
        self.total_completion_tokens = 0
        self.total_cost = 0.0
        self.call_count = 0
        self.calls_by_model: dict[str, int] = {}
        self.pricing = pricing or {}

    def record(self, prompt_tokens: int, completion_tokens: int, model_name: str | None = None):
        self.total_prompt_tokens += prompt_tokens
        self.total_completion_tokens += completion_tokens
        self.call_count += 1

        if model_name:
            self.calls_by_model[model_name] = self.calls_by_model.get(model_name, 0) + 1
            self._calculate_cost(model_name, prompt_tokens, completion_tokens)

    def _calculate_cost(self, model_name: str, prompt: int, completion: int):
        # Longest matching pattern wins so "flash-lite" is not billed as "flash"
        price_entry = None
        for pattern in sorted(self.pricing, key=len, reverse=True):
            if pattern in model_name.lower():
                price_entry = self.pricing[pattern]
                break

        if price_entry:
            # Pricing is per 1M tokens
            cost = (prompt * price_entry["input"] / 1_000_000) + \
                   (completion * price_entry["output"] / 1_000_000)
            self.total_cost += cost

    @property
    def total_tokens(self):
        return self.total_prompt_tokens + self.total_completion_tokens

    def summary(self) -> str:
        parts = [
            f"{self.call_count} calls",
            f"{self.total_prompt_tokens} prompt tokens",
            f"{self.total_completion_tokens} completion tokens",
        ]
        if self.total_cost:
            parts.append(f"${self.total_cost:.4f}")
        if self.calls_by_model:
            per_model = ", ".join(f"{m}={n}" for m, n in self.calls_by_model.items())
            parts.append(f"({per_model})")
        return " | ".join(parts)


# Global singleton (pricing is injected during CLI init)
token_tracker = TokenTracker()


def setup_logger(log_dir: str | None = ".diffreview/logs",
                 verbose: bool = False) -> logging.Logger:
    """Attach handlers to the package logger.

    Everything goes to a timestamped file under *log_dir* (skipped when
    *log_dir* is falsy); the console only gets warnings unless *verbose*.
    """
    logger = logging.getLogger("diff_reviewer")
    logger.setLevel(logging.DEBUG)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        log_file = os.path.join(log_dir, f"review_{timestamp}.log")

        # File handler captures everything
        fh = logging.FileHandler(log_file, encoding="utf-8")
        fh.setLevel(logging.DEBUG)
        fh.setFormatter(logging.Formatter(
            "%(asctime)s [%(levelname)s] %(message)s", datefmt="%H:%M:%S"
        ))
        logger.addHandler(fh)

    ch = logging.StreamHandler(sys.stderr)
    ch.setLevel(logging.INFO if verbose else logging.WARNING)
    ch.setFormatter(logging.Formatter("[%(levelname)s] %(message)s"))
    logger.addHandler(ch)

    return logger


# Package logger; handlers are attached by setup_logger()
log = logging.getLogger("diff_reviewer")
