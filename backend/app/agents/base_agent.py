"""
Abstract base class for the AI agents behind the sentiment API.
Provides common functionality for Claude API interactions and error handling.
"""

import time
from abc import ABC, abstractmethod
from typing import Any, Optional

import anthropic
from anthropic import AsyncAnthropic

from app.config import get_settings
from app.utils.logger import get_logger

logger = get_logger(__name__)
settings = get_settings()


class AgentProcessingError(Exception):
    """Raised when an agent fails to process content."""
    pass


class RateLimitedError(AgentProcessingError):
    """The oracle answered 429. The caller may retry later."""
    pass


class QuotaExhaustedError(AgentProcessingError):
    """The oracle answered 402. Credits must be added before retrying."""
    pass


class OracleUnavailableError(AgentProcessingError):
    """Any other oracle failure, including replies that cannot be parsed."""
    pass


class BaseAgent(ABC):
    """
    Abstract base class for AI agents.

    Provides the Claude call, logging, and the mapping of transport
    failures onto the batch-level error types. Calls are made once; a
    failed call surfaces immediately to the caller.
    """

    def __init__(self, client: Optional[AsyncAnthropic] = None) -> None:
        """Initialize the agent with Claude API client."""
        if client is None:
            if not settings.anthropic_api_key:
                raise ValueError("ANTHROPIC_API_KEY environment variable is required")
            client = AsyncAnthropic(api_key=settings.anthropic_api_key, max_retries=0)

        self.client: AsyncAnthropic = client
        self.model: str = settings.claude_model
        self.agent_name: str = self.__class__.__name__

    @abstractmethod
    async def process(self, *args: Any, **kwargs: Any) -> Any:
        """
        Run the agent and return its results.

        Raises:
            AgentProcessingError: If processing fails
        """
        pass

    async def _call_claude(self, prompt: str, system_prompt: Optional[str] = None) -> str:
        """
        Make a single call to Claude API with error handling and logging.

        Args:
            prompt: The user prompt to send to Claude
            system_prompt: Optional system prompt for Claude

        Returns:
            Claude's text response

        Raises:
            RateLimitedError: On HTTP 429
            QuotaExhaustedError: On HTTP 402
            OracleUnavailableError: On any other failure or an empty reply
        """
        start_time = time.time()

        logger.info(f"[{self.agent_name}] Sending prompt to Claude",
                    prompt_length=len(prompt),
                    has_system=bool(system_prompt))

        message_params = {
            "model": self.model,
            "max_tokens": settings.oracle_max_tokens,
            "temperature": settings.oracle_temperature,
            "messages": [{"role": "user", "content": prompt}]
        }
        if system_prompt:
            message_params["system"] = system_prompt

        try:
            response = await self.client.messages.create(**message_params)

        except anthropic.RateLimitError as e:
            logger.warning(f"[{self.agent_name}] Rate limit hit", error=str(e),
                           duration_seconds=round(time.time() - start_time, 2))
            raise RateLimitedError("Rate limit exceeded. Please try again in a moment.")

        except anthropic.APIStatusError as e:
            duration = round(time.time() - start_time, 2)
            if e.status_code == 402:
                logger.error(f"[{self.agent_name}] Oracle credits exhausted", duration_seconds=duration)
                raise QuotaExhaustedError("AI credits exhausted. Please add credits to continue.")
            logger.error(f"[{self.agent_name}] Claude API error",
                         status_code=e.status_code, error=str(e), duration_seconds=duration)
            raise OracleUnavailableError(f"Claude API error: {str(e)}")

        except anthropic.APIError as e:
            logger.error(f"[{self.agent_name}] Claude API error",
                         error=str(e), duration_seconds=round(time.time() - start_time, 2))
            raise OracleUnavailableError(f"Claude API error: {str(e)}")

        response_text = "".join(
            getattr(block, "text", "") for block in (response.content or [])
        )
        if not response_text.strip():
            raise OracleUnavailableError("Empty response from Claude API")

        usage = getattr(response, "usage", None)
        logger.info(f"[{self.agent_name}] Claude response received",
                    duration_seconds=round(time.time() - start_time, 2),
                    response_length=len(response_text),
                    input_tokens=getattr(usage, "input_tokens", 0),
                    output_tokens=getattr(usage, "output_tokens", 0))

        return response_text

    def _truncate_for_log(self, text: str, max_length: int = 200) -> str:
        """
        Truncate text for logging to avoid overly long log messages.

        Args:
            text: Text to truncate
            max_length: Maximum length to keep

        Returns:
            Truncated text with ellipsis if needed
        """
        if len(text) <= max_length:
            return text
        return text[:max_length] + "..."
