"""Embedding model integration with Hugging Face Inference API."""
import time
import logging
from typing import List
import httpx
from config import (
    HUGGINGFACE_API_KEY,
    EMBEDDING_MODEL,
    EMBEDDING_MAX_RETRIES,
    EMBEDDING_RETRY_DELAY,
    EMBEDDING_TIMEOUT,
)

logger = logging.getLogger(__name__)


class EmbeddingError(RuntimeError):
    """Raised when the embedding API cannot produce vectors."""


class EmbeddingModel:
    """Wrapper for Hugging Face Inference API embedding model."""

    def __init__(
        self,
        api_key: str = HUGGINGFACE_API_KEY,
        model_name: str = EMBEDDING_MODEL,
        max_retries: int = EMBEDDING_MAX_RETRIES,
        retry_delay: float = EMBEDDING_RETRY_DELAY,
        timeout: float = EMBEDDING_TIMEOUT
    ):
        """
        Initialize the embedding model client.

        Args:
            api_key: Hugging Face API key
            model_name: Model identifier
            max_retries: Maximum number of attempts for transient failures
            retry_delay: Fixed delay in seconds between attempts
            timeout: Request timeout in seconds
        """
        if not api_key:
            raise ValueError("HUGGINGFACE_API_KEY environment variable is required")

        self.api_key = api_key
        self.model_name = model_name
        self.max_retries = max(1, max_retries)
        self.retry_delay = retry_delay
        self.timeout = timeout
        self.api_url = f"https://api-inference.huggingface.co/models/{model_name}"

        logger.info(f"Initialized EmbeddingModel with model: {model_name}")

    def embed_text(self, text: str) -> List[float]:
        """
        Generate embedding for a single text string.

        Raises:
            ValueError: If text is empty
            EmbeddingError: If API request fails after all retries
        """
        if not text or not text.strip():
            raise ValueError("Text cannot be empty")

        return self._embed_with_retry([text])[0]

    def embed_batch(self, texts: List[str]) -> List[List[float]]:
        """
        Generate embeddings for multiple texts in a single API call.

        Raises:
            ValueError: If texts list is empty or contains only empty strings
            EmbeddingError: If API request fails after all retries
        """
        if not texts:
            raise ValueError("Texts list cannot be empty")

        valid_texts = [t for t in texts if t and t.strip()]
        if len(valid_texts) < len(texts):
            logger.warning(f"Filtered out {len(texts) - len(valid_texts)} empty texts from batch")

        if not valid_texts:
            raise ValueError("All texts in batch are empty")

        return self._embed_with_retry(valid_texts)

    def _embed_with_retry(self, texts: List[str]) -> List[List[float]]:
        """
        Call the HF API, retrying 503 (model loading), timeouts and network
        errors with a fixed delay. Other failures are not retried.
        """
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json"
        }

        payload = {
            "inputs": texts,
            "options": {
                "wait_for_model": True
            }
        }

        last_error = None

        for attempt in range(1, self.max_retries + 1):
            try:
                start_time = time.time()

                with httpx.Client(timeout=self.timeout) as client:
                    response = client.post(
                        self.api_url,
                        headers=headers,
                        json=payload
                    )

                elapsed = time.time() - start_time

                if response.status_code == 503:
                    last_error = "Model is loading (503)"
                    logger.warning(
                        f"{last_error} on attempt {attempt}/{self.max_retries}. "
                        f"Retrying in {self.retry_delay}s..."
                    )
                    self._pause(attempt)
                    continue

                if response.status_code == 429:
                    logger.error("Rate limit exceeded for Hugging Face API")
                    raise EmbeddingError("Rate limit exceeded. Please try again later.")

                if response.status_code == 401:
                    logger.error("Authentication failed for Hugging Face API")
                    raise EmbeddingError("Invalid API key")

                if response.status_code != 200:
                    error_msg = f"API request failed with status {response.status_code}: {response.text}"
                    logger.error(error_msg)
                    raise EmbeddingError(error_msg)

                embeddings = response.json()
                logger.debug(f"Generated embeddings for {len(texts)} texts in {elapsed:.2f}s")
                return embeddings

            except httpx.TimeoutException:
                last_error = f"Request timeout after {self.timeout}s"
                logger.error(f"{last_error} on attempt {attempt}/{self.max_retries}")
                self._pause(attempt)

            except httpx.RequestError as e:
                last_error = f"Network error: {str(e)}"
                logger.error(f"{last_error} on attempt {attempt}/{self.max_retries}")
                self._pause(attempt)

        error_msg = f"Failed to generate embeddings after {self.max_retries} attempts. Last error: {last_error}"
        logger.error(error_msg)
        raise EmbeddingError(error_msg)

    def _pause(self, attempt: int) -> None:
        if attempt < self.max_retries:
            time.sleep(self.retry_delay)

    def warmup(self) -> bool:
        """
        Warm up the model with a dummy query to avoid cold start delays.

        Returns:
            True if warmup successful, False otherwise
        """
        try:
            logger.info("Warming up embedding model...")
            start_time = time.time()
            self.embed_text("warmup query")
            logger.info(f"Model warmup completed in {time.time() - start_time:.1f}s")
            return True
        except (EmbeddingError, httpx.HTTPError) as e:
            logger.error(f"Model warmup failed: {str(e)}")
            return False
