from .base import ModelClient, ModelCallError, RETRYABLE_STATUSES
from .gemini_client import GeminiClient
