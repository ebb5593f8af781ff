import asyncio
import json
from typing import Any, AsyncIterator, Dict, List, Optional, Union

import httpx
from httpx import TimeoutException, HTTPStatusError

from smeta.core.exceptions import APIClientError, APITimeoutError
from smeta.utils.logging import get_logger

LOGGER = get_logger(__name__)

DEFAULT_CHUNK_SIZE = 64 * 1024

ContentPart = Union[str, Dict[str, Any]]


class BaseLLMClient:
    """Base client for LLM API interactions.

    Handles common logic for HTTP requests, retries, timeout management,
    and error logging. Request bodies are serialized once and streamed to
    the server in fixed-size chunks with an explicit Content-Length.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str,
        timeout: int = 300,
        max_retries: int = 1,
        retry_delay: int = 2,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ):
        """Initialize the LLM client.

        Args:
            api_key: API key for authentication
            base_url: Base URL for the API
            timeout: Request timeout in seconds
            max_retries: Maximum number of attempts
            retry_delay: Base delay for exponential backoff
            chunk_size: Size of each streamed body chunk in bytes
        """
        self.api_key = api_key
        self.base_url = base_url
        self.timeout = timeout
        self.max_retries = max(1, max_retries)
        self.retry_delay = retry_delay
        self.chunk_size = chunk_size
        self.logger = LOGGER

    async def call_api(
        self,
        endpoint: str = "",
        payload: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        """POST a JSON payload with retry logic.

        Args:
            endpoint: API endpoint (appended to base_url)
            payload: JSON payload
            headers: Additional headers

        Returns:
            Parsed JSON response

        Raises:
            APIClientError: If the API call fails after retries
            APITimeoutError: If the API call times out after retries
        """
        url = f"{self.base_url}{endpoint}" if endpoint else self.base_url
        body = json.dumps(payload or {}, ensure_ascii=False).encode("utf-8")

        default_headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            "Content-Length": str(len(body)),
        }

        if headers:
            default_headers.update(headers)

        self.logger.debug(
            f"Calling LLM API: {url}",
            extra={"timeout": self.timeout, "body_bytes": len(body)}
        )

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            for attempt in range(self.max_retries):
                try:
                    response = await client.post(
                        url,
                        headers=default_headers,
                        content=self._iter_chunks(body),
                    )
                    response.raise_for_status()
                    return response.json()

                except HTTPStatusError as e:
                    await self._handle_http_error(e, attempt, url)

                except TimeoutException as e:
                    await self._handle_timeout_error(e, attempt, url)

                except (httpx.HTTPError, ValueError) as e:
                    await self._handle_generic_error(e, attempt, url)

        raise APIClientError(f"Failed to call API {url} after {self.max_retries} attempts")

    async def _iter_chunks(self, body: bytes) -> AsyncIterator[bytes]:
        """Yield the request body in chunk_size slices."""
        for offset in range(0, len(body), self.chunk_size):
            yield body[offset:offset + self.chunk_size]
            # Let the transport drain before producing the next slice
            await asyncio.sleep(0)

    async def _handle_http_error(self, error: HTTPStatusError, attempt: int, url: str):
        """Handle HTTP status errors."""
        status_code = error.response.status_code

        try:
            error_body = error.response.text
        except httpx.ResponseNotRead:
            error_body = "Could not read response body"

        self.logger.warning(
            f"API HTTP error (Attempt {attempt + 1}/{self.max_retries})",
            extra={
                "url": url,
                "status_code": status_code,
                "error_body": error_body[:500]
            }
        )

        # Don't retry on client errors (4xx) unless it's rate limiting (429)
        if 400 <= status_code < 500 and status_code != 429:
            raise APIClientError(f"API Client Error {status_code}: {error_body[:500]}", error) from error

        if attempt < self.max_retries - 1:
            await self._wait_before_retry(attempt)
        else:
            raise APIClientError(f"API HTTP Error {status_code} after retries", error) from error

    async def _handle_timeout_error(self, error: TimeoutException, attempt: int, url: str):
        """Handle timeout errors."""
        self.logger.warning(
            f"API Timeout (Attempt {attempt + 1}/{self.max_retries})",
            extra={"url": url, "timeout": self.timeout}
        )

        if attempt < self.max_retries - 1:
            await self._wait_before_retry(attempt)
        else:
            raise APITimeoutError(
                f"API Timeout after {self.max_retries} attempts ({self.timeout}s each)", error
            ) from error

    async def _handle_generic_error(self, error: Exception, attempt: int, url: str):
        """Handle transport and decoding errors."""
        self.logger.warning(
            f"API Generic Error (Attempt {attempt + 1}/{self.max_retries})",
            extra={"url": url, "error": str(error)}
        )

        if attempt < self.max_retries - 1:
            await self._wait_before_retry(attempt)
        else:
            raise APIClientError(f"API Error: {str(error)}", error) from error

    async def _wait_before_retry(self, attempt: int):
        """Exponential backoff wait."""
        wait_time = self.retry_delay * (2 ** attempt)
        await asyncio.sleep(wait_time)


class OpenRouterClient:
    """Wrapper for the OpenRouter chat-completions API.

    Accepts ordered multimodal content: plain strings and ``{"text": ...}``
    dicts become text parts, ``{"image_url": "data:..."}`` dicts become
    image parts.
    """

    def __init__(
        self,
        api_key: str,
        model: str,
        base_url: str,
        timeout: int = 300,
        max_retries: int = 1,
        retry_delay: int = 2,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        app_url: Optional[str] = None,
        app_title: Optional[str] = None,
    ):
        """Initialize OpenRouter client.

        Args:
            api_key: OpenRouter API key
            model: Model name to use (e.g., "google/gemini-2.5-flash")
            base_url: OpenRouter chat-completions URL
            timeout: Request timeout in seconds
            max_retries: Maximum attempts
            retry_delay: Base delay for exponential backoff
            chunk_size: Streamed body chunk size in bytes
            app_url: Sent as HTTP-Referer
            app_title: Sent as X-Title
        """
        self.api_key = api_key
        self.model = model
        self.base_url = base_url
        self.timeout = timeout
        self.max_retries = max_retries
        self.app_url = app_url
        self.app_title = app_title

        self.client = BaseLLMClient(
            api_key=api_key,
            base_url=base_url,
            timeout=timeout,
            max_retries=max_retries,
            retry_delay=retry_delay,
            chunk_size=chunk_size,
        )

        LOGGER.info(f"Initialized OpenRouter client with model {self.model}")

    @staticmethod
    def build_user_content(contents: Union[str, List[ContentPart]]) -> Union[str, List[Dict[str, Any]]]:
        """Convert ordered content parts into OpenRouter message parts."""
        if isinstance(contents, str):
            return contents

        parts: List[Dict[str, Any]] = []
        for part in contents:
            if isinstance(part, str):
                parts.append({"type": "text", "text": part})
            elif isinstance(part, dict) and "image_url" in part:
                url = part["image_url"]
                if isinstance(url, dict):
                    url = url.get("url", "")
                parts.append({"type": "image_url", "image_url": {"url": url}})
            elif isinstance(part, dict) and "text" in part:
                parts.append({"type": "text", "text": part["text"]})
            else:
                raise APIClientError(f"Unsupported content part: {type(part).__name__}")
        return parts

    async def generate_content(
        self,
        contents: Union[str, List[ContentPart]],
        system_instruction: Optional[str] = None,
        generation_config: Optional[Dict[str, Any]] = None,
    ) -> str:
        """Generate content using OpenRouter model.

        Args:
            contents: Input content (string or list of parts)
            system_instruction: Optional system instruction
            generation_config: Optional generation config (temperature, etc.)

        Returns:
            Generated text response

        Raises:
            APIClientError: If the call fails or the envelope is malformed
            APITimeoutError: If the call exceeds the timeout
        """
        messages = []

        if system_instruction:
            messages.append({
                "role": "system",
                "content": system_instruction
            })

        messages.append({
            "role": "user",
            "content": self.build_user_content(contents)
        })

        payload: Dict[str, Any] = {
            "model": self.model,
            "messages": messages,
        }

        if generation_config:
            if "temperature" in generation_config:
                payload["temperature"] = generation_config["temperature"]
            if "max_output_tokens" in generation_config:
                payload["max_tokens"] = generation_config["max_output_tokens"]
        else:
            payload["temperature"] = 0.0

        headers = {}
        if self.app_url:
            headers["HTTP-Referer"] = self.app_url
        if self.app_title:
            headers["X-Title"] = self.app_title

        response = await self.client.call_api(payload=payload, headers=headers)

        choices = response.get("choices") if isinstance(response, dict) else None
        if not choices:
            LOGGER.error(
                "Unexpected OpenRouter response format",
                extra={"response_excerpt": str(response)[:500]}
            )
            raise APIClientError("Invalid response format from OpenRouter")

        message = choices[0].get("message") or {}
        content = message.get("content")
        if not content:
            LOGGER.warning("Empty response from OpenRouter")
            return ""

        return content
