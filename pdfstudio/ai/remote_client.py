"""
HTTP client for the PDF Studio AI microservice.

The microservice (default http://localhost:8081/api/ai) hosts a model with
response caching. Endpoints:
    GET  /health     -> 200 when ready
    POST /summarize  {content, filename, maxLength} -> {summary, processingTimeMs, cached, modelUsed}
    POST /chat       {message, context, conversationId} -> {response, processingTimeMs, cached}
"""

import threading
import time

import requests

from ..config import AIConfig
from ..logging_config import debug_log, info, warning
from .errors import RemoteConnectFailure, RemoteServerError, RemoteTimeout
from .types import ChatResponse, SummaryResponse


class RemoteInferenceClient:
    """
    Talks to the AI microservice over HTTP.

    Health is never cached: every is_available() call probes again.
    """

    def __init__(self, config: AIConfig):
        self.base_url = config.remote_base_url.rstrip('/')
        self.timeout = config.remote_timeout_seconds
        self.health_timeout = config.health_timeout_seconds
        self.health_attempts = config.health_attempts
        self.retry_interval = config.health_retry_seconds

    def _post(self, endpoint: str, payload: dict) -> dict:
        url = f"{self.base_url}/{endpoint}"
        try:
            response = requests.post(url, json=payload, timeout=self.timeout)
        except requests.exceptions.Timeout as e:
            raise RemoteTimeout(
                f"AI microservice timed out after {self.timeout} seconds ({url})"
            ) from e
        except requests.exceptions.ConnectionError as e:
            raise RemoteConnectFailure(f"Cannot connect to AI microservice at {url}") from e
        except requests.exceptions.RequestException as e:
            raise RemoteConnectFailure(f"Request to AI microservice failed: {e}") from e

        if response.status_code != 200:
            raise RemoteServerError(response.status_code, response.text[:200])

        try:
            data = response.json()
        except ValueError as e:
            raise RemoteServerError(response.status_code, "response body is not JSON") from e
        if not isinstance(data, dict):
            raise RemoteServerError(response.status_code, "response body is not a JSON object")
        return data

    def summarize(self, content: str, filename: str, max_length: int) -> SummaryResponse:
        """
        Ask the microservice for a summary.

        Args:
            content: Document text (already truncated by the caller)
            filename: Document title, used by the service for logging/caching
            max_length: Completion token budget on the service side

        Returns:
            SummaryResponse

        Raises:
            ValueError: content is None
            RemoteConnectFailure / RemoteTimeout / RemoteServerError
        """
        if content is None:
            raise ValueError("content must not be None")

        debug_log(f"[AI SERVICE] Calling AI microservice for summary: {filename}")
        data = self._post('summarize', {
            'content': content,
            'filename': filename,
            'maxLength': max_length,
        })
        result = SummaryResponse.from_json(data)
        info(
            f"Summary received from microservice in {result.processing_time_ms}ms "
            f"(cached: {result.cached})"
        )
        return result

    def chat(self, message: str, context: str | None = None,
             conversation_id: str | None = None) -> ChatResponse:
        """
        Ask the microservice a question about the document.

        Raises:
            ValueError: message is None
            RemoteConnectFailure / RemoteTimeout / RemoteServerError
        """
        if message is None:
            raise ValueError("message must not be None")

        debug_log(f"[AI SERVICE] Calling AI microservice for chat ({len(message)} chars)")
        data = self._post('chat', {
            'message': message,
            'context': context,
            'conversationId': conversation_id,
        })
        result = ChatResponse.from_json(data)
        debug_log(f"[AI SERVICE] Chat response in {result.processing_time_ms}ms (cached: {result.cached})")
        return result

    def _check_health(self) -> bool:
        try:
            response = requests.get(f"{self.base_url}/health", timeout=self.health_timeout)
        except requests.exceptions.RequestException as e:
            debug_log(f"[AI SERVICE] Health check failed: {e}")
            return False
        if response.status_code != 200:
            debug_log(f"[AI SERVICE] Health check returned status {response.status_code}")
            return False
        return True

    def is_available(self, cancel_event: threading.Event | None = None) -> bool:
        """
        Probe the health endpoint, retrying with a fixed delay.

        Args:
            cancel_event: Set it to abort the retry loop during a delay

        Returns:
            bool: True on the first 200 response; False once all attempts
                  fail or the probe is cancelled
        """
        cancel_event = cancel_event or threading.Event()
        start_time = time.time()

        for attempt in range(1, self.health_attempts + 1):
            if self._check_health():
                debug_log(f"[AI SERVICE] Available at {self.base_url} (attempt {attempt})")
                return True

            if attempt < self.health_attempts:
                debug_log(
                    f"[AI SERVICE] Attempt {attempt}/{self.health_attempts} failed, "
                    f"retrying in {self.retry_interval:g}s"
                )
                if cancel_event.wait(self.retry_interval):
                    debug_log("[AI SERVICE] Availability check cancelled")
                    return False

        warning(
            f"AI microservice not available at {self.base_url} after "
            f"{self.health_attempts} attempts ({time.time() - start_time:.1f}s)"
        )
        return False
