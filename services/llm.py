"""
Text generation client used by summarization.
"""

import logging
from abc import ABC, abstractmethod

import openai
from openai import AsyncOpenAI

from core.exceptions import ExternalProviderError, NetworkError, RateLimitError

logger = logging.getLogger(__name__)


class LlmClient(ABC):
    @abstractmethod
    async def generate(self, prompt: str) -> str:
        """
        Generate text for ``prompt``.

        Raises:
            ExternalProviderError: If the provider fails or returns nothing
        """
        pass


class OpenAILlmClient(LlmClient):
    def __init__(self, api_key: str, model: str = "gpt-4o-mini", timeout: float = 60.0):
        self.model = model
        self.client = AsyncOpenAI(api_key=api_key, timeout=timeout)

    async def generate(self, prompt: str) -> str:
        context = {"provider": "openai", "model": self.model}
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
                temperature=0.3,
            )
        except openai.RateLimitError as e:
            raise RateLimitError("LLM rate limit exceeded", context=context, original_exception=e)
        except (openai.APITimeoutError, openai.APIConnectionError) as e:
            raise NetworkError("LLM provider unreachable", context=context, original_exception=e)
        except openai.OpenAIError as e:
            raise ExternalProviderError("LLM request failed", context=context, original_exception=e)

        if not response.choices or not response.choices[0].message or not response.choices[0].message.content:
            raise ExternalProviderError("LLM returned an empty response", context=context)

        text = response.choices[0].message.content.strip()
        logger.debug(f"LLM generated {len(text)} characters")
        return text
