"""
Google Gemini client: calls the Gemini REST API directly.
"""

import requests

from .base import ModelClient, ModelCallError
from ..cli_display import token_tracker, log


class GeminiClient(ModelClient):

    def __init__(self, base_url: str, api_key: str, temperature: float = 0.8,
                 top_p: float = 0.95, timeout: tuple = (10, 300)):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.temperature = temperature
        self.top_p = top_p
        self.timeout = timeout

    def _payload(self, prompt: str, max_output_tokens: int) -> dict:
        return {
            "contents": [
                {
                    "role": "user",
                    "parts": [{"text": prompt}]
                }
            ],
            "generationConfig": {
                "temperature": self.temperature,
                "topP": self.top_p,
                "maxOutputTokens": max_output_tokens,
            },
        }

    def generate(self, prompt: str, model: str, max_output_tokens: int = 8192) -> str:
        est_tokens = int(len(prompt.split()) * 1.3)
        log.debug(f"[Gemini] Sending ~{est_tokens} est. tokens to {model}")

        url = f"{self.base_url}/models/{model}:generateContent"
        try:
            response = requests.post(
                url,
                params={"key": self.api_key},
                json=self._payload(prompt, max_output_tokens),
                timeout=self.timeout,
            )
            response.raise_for_status()
            data = response.json()
        except requests.exceptions.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            body = e.response.text[:500] if e.response is not None else ""
            raise ModelCallError(f"Gemini API error ({status}): {body}", status=status) from e
        except requests.exceptions.RequestException as e:
            raise ModelCallError(f"Gemini request failed: {e}") from e
        except ValueError as e:
            raise ModelCallError(f"Gemini returned invalid JSON: {e}") from e

        # Extract token counts from usageMetadata
        usage = data.get("usageMetadata", {})
        prompt_tokens = usage.get("promptTokenCount", est_tokens)
        completion_tokens = usage.get("candidatesTokenCount", 0)
        token_tracker.record(
            prompt_tokens if isinstance(prompt_tokens, int) else est_tokens,
            completion_tokens if isinstance(completion_tokens, int) else 0,
            model_name=model,
        )
        log.debug(f"[Gemini] Usage: prompt={prompt_tokens} completion={completion_tokens}")

        # Extract text from candidates
        candidates = data.get("candidates", [])
        if not candidates:
            log.warning(f"[Gemini] No candidates in response: {str(data)[:200]}")
            return ""
        parts = candidates[0].get("content", {}).get("parts", [])
        response_text = "".join(p.get("text", "") for p in parts)
        log.debug(f"[Gemini] Response:\n{response_text}")
        return response_text
