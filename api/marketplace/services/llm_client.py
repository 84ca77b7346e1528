"""
Thin wrapper over the OpenAI chat-completions API.
"""
import logging
from dataclasses import dataclass

import openai

from marketplace.core.config import Settings

logger = logging.getLogger(__name__)


class LLMUnavailableError(Exception):
    """No API key is configured or the completion call failed."""


@dataclass
class LLMParameters:
    temperature: float
    max_tokens: int


# Per-task generation parameters
TASK_PARAMETERS = {
    "chat": LLMParameters(temperature=0.7, max_tokens=500),
    "matching": LLMParameters(temperature=0.2, max_tokens=1000),
    "capability_search": LLMParameters(temperature=0.3, max_tokens=2000),
    "submission_tips": LLMParameters(temperature=0.7, max_tokens=600),
    "feedback_analysis": LLMParameters(temperature=0.3, max_tokens=800),
}


class LLMClient:
    """Completion client. Built without a key it refuses every call."""

    def __init__(self, api_key: str | None, model: str, timeout: float = 30.0):
        self.model = model
        self.client = openai.OpenAI(api_key=api_key, timeout=timeout) if api_key else None
        if self.client is None:
            logger.warning("OPENAI_API_KEY not set, AI features will return fallback responses")

    @classmethod
    def from_settings(cls, settings: Settings) -> "LLMClient":
        return cls(settings.OPENAI_API_KEY, settings.OPENAI_MODEL, settings.OPENAI_TIMEOUT)

    @property
    def available(self) -> bool:
        return self.client is not None

    def complete(
        self,
        messages: list[dict[str, str]],
        task: str = "chat",
        json_mode: bool = False,
    ) -> str:
        """Return the completion text for ``messages``."""
        if self.client is None:
            raise LLMUnavailableError("OpenAI API key is not configured")

        params = TASK_PARAMETERS.get(task, TASK_PARAMETERS["chat"])
        kwargs = {}
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}
        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                max_tokens=params.max_tokens,
                temperature=params.temperature,
                **kwargs,
            )
        except openai.OpenAIError as e:
            raise LLMUnavailableError(f"OpenAI request failed: {e}") from e

        content = response.choices[0].message.content
        if not content:
            raise LLMUnavailableError("OpenAI returned an empty completion")
        return content
