"""Helper model that names clusters through an OpenAI-compatible endpoint."""

from __future__ import annotations

import asyncio
import os
import time

from pydantic_ai import Agent
from pydantic_ai.models import Model
from pydantic_ai.models.openai import OpenAIChatModel
from pydantic_ai.settings import ModelSettings
from structlog import get_logger

from graph_organizer.errors import ExternalServiceFailure
from graph_organizer.settings import get_settings

logger = get_logger()

SYSTEM_PROMPT = (
    "You name groups of events in a personal knowledge graph. "
    "Answer with a short title and nothing else."
)


class NamingHelper:
    """Text generator backed by a pydantic-ai agent."""

    def __init__(self, model: Model | None = None, timeout_seconds: float | None = None):
        """
        Initialize with the configured endpoint, or with an explicit model.

        Args:
            model: A pydantic-ai model to use instead of the configured one
            timeout_seconds: Per-request timeout (defaults to settings)
        """
        settings = get_settings()
        self.timeout_seconds = timeout_seconds or settings.title_timeout_seconds

        if model is None:
            # Set environment variables for pydantic-ai OpenAI model
            if settings.openai_base_url:
                os.environ["OPENAI_BASE_URL"] = str(settings.openai_base_url)
            if settings.openai_api_key:
                os.environ["OPENAI_API_KEY"] = settings.openai_api_key

            # Configure the model with temperature=0 for consistency
            self.model_name = settings.helper_model
            model = OpenAIChatModel(settings.helper_model, settings=ModelSettings(temperature=0.0))
        else:
            self.model_name = getattr(model, "model_name", type(model).__name__)

        self.agent = Agent(model, system_prompt=SYSTEM_PROMPT, retries=1)

    async def generate(self, prompt: str) -> str:
        """
        Send one prompt and return the model's text reply.

        Raises:
            ExternalServiceFailure: On timeout, request errors, or an empty reply
        """
        start_time = time.time()
        try:
            result = await asyncio.wait_for(self.agent.run(prompt), timeout=self.timeout_seconds)
        except TimeoutError as e:
            raise ExternalServiceFailure(
                f"{self.model_name} did not answer within {self.timeout_seconds}s"
            ) from e
        except Exception as e:
            raise ExternalServiceFailure(f"{self.model_name} request failed: {e}") from e

        output = (result.output or "").strip() if result is not None else ""
        if not output:
            raise ExternalServiceFailure(f"{self.model_name} returned an empty reply")

        logger.debug(
            "Generated text",
            model=self.model_name,
            duration_seconds=time.time() - start_time,
            length=len(output),
        )
        return output


# Singleton instance
_naming_helper = None


def get_naming_helper() -> NamingHelper:
    """Get the naming helper singleton."""
    global _naming_helper
    if _naming_helper is None:
        _naming_helper = NamingHelper()
    return _naming_helper
