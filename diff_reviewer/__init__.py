"""
diff_reviewer: AI review comments anchored to exact unified-diff positions.

Public API for library usage::

    from diff_reviewer import review_diff
    from diff_reviewer.llm import GeminiClient

    comments = review_diff(diff_text, GeminiClient(base_url, api_key))
"""

from .api import review_diff
from .review.position_resolver import AnchoredComment

__all__ = ["review_diff", "AnchoredComment"]
