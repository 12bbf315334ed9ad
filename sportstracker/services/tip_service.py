import asyncio
import logging
from typing import Optional

import litellm

from ..core.config import get_settings
from ..core.defaults_loader import get_config_value
from ..domain.errors import TipGenerationFailure

logger = logging.getLogger(__name__)

DEFAULT_FALLBACK_TIP = "Failed to generate a tip. Keep up the great work!"
DEFAULT_PROMPT = (
    "Generate a short, motivational, and encouraging tip for a group of friends "
    'doing a fitness challenge. The tip should be related to: "{topic}". Keep it '
    'concise, under 40 words, and positive. Address the group as "team" or "everyone".'
)


class TipService:
    """Motivational tips for the coach, generated through LiteLLM.

    Fails closed: any provider error, empty answer or timeout yields the
    fallback tip instead of an exception. No retries.
    """

    def __init__(
        self,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> None:
        settings = get_settings()
        self.model = model or settings.tip_model
        self.timeout = timeout if timeout is not None else settings.tip_timeout_seconds
        self.fallback = get_config_value("tips.fallback", DEFAULT_FALLBACK_TIP)
        self.prompt_template = get_config_value("tips.prompt", DEFAULT_PROMPT)
        self.temperature = float(get_config_value("tips.temperature", 0.8))
        self.top_p = float(get_config_value("tips.top_p", 0.95))

    def build_prompt(self, topic: str) -> str:
        return self.prompt_template.format(topic=topic)

    async def generate_motivational_tip(self, topic: str) -> str:
        """Return a short tip about *topic*, or the fallback text on failure."""
        try:
            return await asyncio.wait_for(self._complete(topic), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.error(f"Tip generation timed out after {self.timeout}s")
        except Exception as e:
            logger.error(f"Error generating tip with {self.model}: {e}")
        return self.fallback

    async def _complete(self, topic: str) -> str:
        logger.info(f"Calling LLM API with model: {self.model}")
        response = await litellm.acompletion(
            model=self.model,
            messages=[{"role": "user", "content": self.build_prompt(topic)}],
            temperature=self.temperature,
            top_p=self.top_p,
        )
        content = response.choices[0].message.content
        if not content or not content.strip():
            raise TipGenerationFailure(f"Empty tip returned by {self.model}")
        return content.strip()
