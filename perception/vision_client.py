"""
Vision Client - Ollama VLM Integration
Sends a screenshot plus prompts to a vision-capable model and returns its raw reply.

Focuses solely on API communication. Prompting and parsing live in
logic/vision_planner.py.

One attempt per call: failures propagate to the caller as PlannerUnavailable
and are never retried silently.
"""
import logging
from typing import Optional

import requests

from common import constants
from common.errors import PlannerUnavailable

logger = logging.getLogger(__name__)


class VisionClient:
    """Ollama chat API client for vision requests."""

    def __init__(
        self,
        base_url: str = constants.VISION_BASE_URL,
        model: str = constants.VISION_MODEL,
        timeout: int = constants.VISION_REQUEST_TIMEOUT_SECS,
        temperature: float = constants.VISION_TEMPERATURE,
        max_tokens: int = constants.VISION_MAX_TOKENS,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize the vision client.

        Args:
            base_url: Ollama API endpoint
            model: Vision model name (llava, llama3.2-vision, qwen2.5-vl, ...)
            timeout: Request timeout in seconds (VLMs are slow)
            temperature: Sampling temperature
            max_tokens: Cap on generated tokens
            session: Optional requests.Session (connection reuse, testing)
        """
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.timeout = timeout
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.session = session or requests.Session()
        logger.info(f"VisionClient initialized: {model} @ {self.base_url}")

    def health_check(self) -> bool:
        """Check that Ollama answers and the vision model is pulled."""
        try:
            response = self.session.get(f"{self.base_url}/api/tags", timeout=5)
            if response.status_code != 200:
                logger.warning(f"Ollama health check returned status {response.status_code}")
                return False
            names = [m.get("name", "") for m in response.json().get("models", [])]
            if not any(self.model in name for name in names):
                logger.warning(f"Vision model '{self.model}' not found in Ollama. Available: {names}")
                return False
            return True
        except requests.exceptions.RequestException as e:
            logger.error(f"Ollama VLM connection test failed: {e}")
            return False

    def chat(
        self,
        user_prompt: str,
        image_base64: str,
        system_prompt: Optional[str] = None,
        max_tokens: Optional[int] = None,
    ) -> str:
        """
        Send one vision request.

        Args:
            user_prompt: Text for the user turn
            image_base64: Screenshot attached to the user turn
            system_prompt: Optional system turn
            max_tokens: Override for the generation cap

        Returns:
            Model reply text

        Raises:
            PlannerUnavailable: On network, HTTP or payload errors
        """
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": user_prompt, "images": [image_base64]})

        payload = {
            "model": self.model,
            "messages": messages,
            "stream": False,
            "options": {
                "temperature": self.temperature,
                "num_predict": max_tokens or self.max_tokens,
            },
        }

        url = f"{self.base_url}/api/chat"
        try:
            logger.info(f"Calling Ollama VLM: {self.model}")
            response = self.session.post(url, json=payload, timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except requests.exceptions.Timeout as e:
            logger.error(f"Ollama VLM request timed out after {self.timeout}s")
            raise PlannerUnavailable(f"Vision analysis timed out after {self.timeout}s") from e
        except requests.exceptions.RequestException as e:
            logger.error(f"Ollama VLM request failed: {e}")
            raise PlannerUnavailable(f"Vision analysis failed: {e}") from e
        except ValueError as e:
            logger.error(f"Ollama VLM returned a non-JSON body: {e}")
            raise PlannerUnavailable("Vision analysis failed: invalid response body") from e

        message = data.get("message") if isinstance(data, dict) else None
        content = message.get("content") if isinstance(message, dict) else None
        if not isinstance(content, str):
            raise PlannerUnavailable("Vision analysis failed: response has no message content")
        return content.strip()
