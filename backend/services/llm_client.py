"""LLM Client for Groq chat-completion API integration."""
import time
from dataclasses import dataclass
from typing import List, Optional, Dict, Any
from groq import Groq
from groq import RateLimitError, AuthenticationError, APIError, APITimeoutError
import logging

from config import GROQ_API_KEY

logger = logging.getLogger(__name__)


@dataclass
class LLMResponse:
    """Response from LLM generation."""
    text: str
    tokens_input: int
    tokens_output: int
    latency_ms: int
    model_used: str


@dataclass
class LLMError:
    """Structured error response from LLM operations."""
    code: str
    message: str
    details: Dict[str, Any]


class LLMClientError(Exception):
    """Custom exception for LLM client errors with structured error information."""

    def __init__(self, error: LLMError):
        self.error = error
        super().__init__(error.message)


class LLMClient:
    """Client for interfacing with Groq API for chat completions."""

    def __init__(self, api_key: Optional[str] = None):
        """
        Initialize LLM client with Groq API key.

        Args:
            api_key: Groq API key (defaults to GROQ_API_KEY from environment)
        """
        self.api_key = api_key or GROQ_API_KEY
        if not self.api_key:
            raise ValueError("GROQ_API_KEY must be provided or set in environment")

        self.client = Groq(api_key=self.api_key)
        logger.info("LLMClient initialized successfully")

    def generate(
        self,
        model: str,
        messages: List[Dict[str, str]],
        max_tokens: int = 500,
        temperature: float = 0.7
    ) -> LLMResponse:
        """
        Generate a chat completion.

        Args:
            model: Model name
            messages: Chat messages (system prompt first, then history)
            max_tokens: Maximum tokens to generate
            temperature: Sampling temperature (0 for classification)

        Returns:
            LLMResponse with text, token counts, and latency

        Raises:
            LLMClientError: Structured error with code, message, and details
        """
        start_time = time.time()

        try:
            logger.debug(f"Generating response with model: {model}, messages={len(messages)}")

            response = self.client.chat.completions.create(
                model=model,
                messages=messages,
                max_tokens=max_tokens,
                temperature=temperature
            )

            latency_ms = int((time.time() - start_time) * 1000)

            text = response.choices[0].message.content or ""

            usage = response.usage
            tokens_input = usage.prompt_tokens if usage else 0
            tokens_output = usage.completion_tokens if usage else 0

            logger.info(
                f"Generated response: model={model}, "
                f"input_tokens={tokens_input}, output_tokens={tokens_output}, "
                f"latency={latency_ms}ms"
            )

            return LLMResponse(
                text=text,
                tokens_input=tokens_input,
                tokens_output=tokens_output,
                latency_ms=latency_ms,
                model_used=model
            )

        except RateLimitError as e:
            raise self._error(
                "RATE_LIMIT_ERROR",
                "Rate limit exceeded. Please try again in a few moments.",
                model, start_time, e,
                retry_after=60
            )

        except AuthenticationError as e:
            raise self._error(
                "AUTHENTICATION_ERROR",
                "Authentication failed. Please check your API key.",
                model, start_time, e
            )

        except APITimeoutError as e:
            raise self._error(
                "TIMEOUT_ERROR",
                "Request timed out. Please try again.",
                model, start_time, e
            )

        except APIError as e:
            raise self._error(
                "API_ERROR",
                f"Groq API error: {str(e)}",
                model, start_time, e
            )

        except Exception as e:
            raise self._error(
                "UNKNOWN_ERROR",
                f"Unexpected error during generation: {str(e)}",
                model, start_time, e,
                error_type=type(e).__name__
            )

    @staticmethod
    def _error(
        code: str,
        message: str,
        model: str,
        start_time: float,
        original: Exception,
        **extra_details: Any
    ) -> LLMClientError:
        """Log a failed completion and wrap it in an LLMClientError."""
        latency_ms = int((time.time() - start_time) * 1000)
        details = {
            "model": model,
            "latency_ms": latency_ms,
            "original_error": str(original),
            **extra_details
        }
        error = LLMError(code=code, message=message, details=details)
        logger.error(
            f"{code}: model={model}, latency={latency_ms}ms, error={original}",
            exc_info=True,
            extra={"error_code": error.code, "error_details": error.details}
        )
        return LLMClientError(error)
