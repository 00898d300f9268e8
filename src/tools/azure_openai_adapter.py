from .base import ExternalServiceAdapter
import logging

from engine.errors import ServiceError, UpstreamError
from settings import settings


class AzureOpenAIAdapter(ExternalServiceAdapter):
    """Chat-completion calls against an Azure OpenAI compatible deployment."""
    name = "Azure OpenAI API"

    def __init__(self, api_key: str = None, endpoint: str = None, deployment: str = None,
                 api_version: str = None, timeout: float = None, session=None):
        cfg = settings.azure_openai
        super().__init__(timeout=timeout or cfg.timeout, session=session)
        self.api_key = cfg.api_key if api_key is None else api_key
        self.endpoint = cfg.endpoint if endpoint is None else endpoint
        self.deployment = deployment or cfg.deployment
        self.api_version = api_version or cfg.api_version

    def health(self) -> bool:
        return bool(self.api_key and self.endpoint)

    @property
    def completions_url(self) -> str:
        # a full deployment URL may be configured directly
        if "/chat/completions" in self.endpoint:
            return self.endpoint
        return (f"{self.endpoint.rstrip('/')}/openai/deployments/{self.deployment}"
                f"/chat/completions?api-version={self.api_version}")

    def chat(self, messages: list, max_tokens: int = 800) -> dict:
        """Returns {"content": str, "total_tokens": int}."""
        if not self.health():
            raise ServiceError("Azure OpenAI API not configured")
        response = self._request(
            "POST",
            self.completions_url,
            headers={"api-key": self.api_key, "Content-Type": "application/json"},
            json={"messages": messages, "max_completion_tokens": max_tokens},
        )
        if not response.ok:
            logging.error(f"Azure OpenAI API error: {response.status_code} {response.text}")
            raise UpstreamError(f"Azure OpenAI request failed ({response.status_code})")
        result = self._json_or_raise(response, "generate a completion")
        choices = result.get("choices") or [{}]
        content = ((choices[0].get("message") or {}).get("content") or "").strip()
        tokens = (result.get("usage") or {}).get("total_tokens", 0)
        return {"content": content, "total_tokens": tokens}
