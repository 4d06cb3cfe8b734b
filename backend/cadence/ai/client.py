import logging
import os
import litellm
from typing import Optional, Dict, Any

from cadence.config import settings

logger = logging.getLogger(__name__)

litellm.drop_params = True

PROVIDER_KEY_ENV = {
    "openrouter": ("OPENROUTER_API_KEY", "openrouter_api_key"),
    "anthropic": ("ANTHROPIC_API_KEY", "anthropic_api_key"),
    "openai": ("OPENAI_API_KEY", "openai_api_key"),
}


class AIClient:
    """Thin litellm wrapper used for merchant-name annotation."""

    def __init__(self):
        self.provider = settings.ai_provider
        self.model = self._get_model_string()
        self._configure_provider()

    def _get_model_string(self) -> str:
        model = settings.ai_model

        if self.provider in ("openrouter", "ollama"):
            prefix = f"{self.provider}/"
            if not model.startswith(prefix):
                return f"{prefix}{model}"
        return model

    def _configure_provider(self):
        if self.provider == "openrouter":
            litellm.api_key = settings.openrouter_api_key
            litellm.api_base = "https://openrouter.ai/api/v1"
        elif self.provider == "ollama":
            litellm.api_base = settings.ai_base_url or "http://localhost:11434"
        elif self.provider == "anthropic":
            litellm.api_key = settings.anthropic_api_key
        elif self.provider == "openai":
            litellm.api_key = settings.openai_api_key

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.1,
        max_tokens: int = 1000
    ) -> str:
        messages = [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt}
        ]

        kwargs: Dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
        }

        env_name = None
        if self.provider in PROVIDER_KEY_ENV:
            name, setting_name = PROVIDER_KEY_ENV[self.provider]
            key = getattr(settings, setting_name)
            if key:
                env_name = name
                os.environ[env_name] = key

        try:
            response = await litellm.acompletion(**kwargs)
            return response.choices[0].message.content
        except Exception as e:
            logger.error(f"AI completion error: {e}")
            raise
        finally:
            if env_name:
                os.environ.pop(env_name, None)


_ai_client: Optional[AIClient] = None

def get_ai_client() -> AIClient:
    global _ai_client
    if _ai_client is None:
        _ai_client = AIClient()
    return _ai_client
