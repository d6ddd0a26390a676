"""
Slack Web API client for the Slack Ticket Bot.

Posts replies into mention threads, looks up profile emails for identity
resolution, and answers interactions through their response URL.
"""

import logging
from typing import Any, Optional

import httpx
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
)

from .config import SlackConfig


logger = logging.getLogger(__name__)


class SlackAPIError(Exception):
    """Error when communicating with the Slack Web API."""
    pass


_retry_transport_errors = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=8),
    retry=retry_if_exception_type(httpx.TransportError),
    reraise=True,
    before_sleep=lambda retry_state: logger.warning(
        f"Retrying Slack call after error: {retry_state.outcome.exception()}"
    ),
)


class SlackClient:
    """
    Minimal Slack Web API client.

    Must be used as a context manager so the underlying HTTP connection
    pool is released.
    """

    def __init__(self, config: SlackConfig):
        """
        Initialize the Slack client.

        Args:
            config: Slack configuration with bot token and API base URL.
        """
        self._config = config
        self._client: Optional[httpx.Client] = None

    def __enter__(self) -> "SlackClient":
        """Context manager entry."""
        self._client = httpx.Client(timeout=self._config.request_timeout)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit."""
        if self._client:
            self._client.close()
            self._client = None

    def _require_client(self) -> httpx.Client:
        if not self._client:
            raise RuntimeError("Client must be used within a context manager")
        return self._client

    @_retry_transport_errors
    def _send(self, http_method: str, url: str, **kwargs: Any) -> httpx.Response:
        response = self._require_client().request(http_method, url, **kwargs)
        response.raise_for_status()
        return response

    def _call(self, method: str, payload: dict[str, Any], http_method: str = "POST") -> dict[str, Any]:
        """
        Call a Web API method and return its decoded payload.

        Raises:
            SlackAPIError: On HTTP or connection errors, or when Slack answers
                ``ok: false``.
        """
        self._require_client()
        url = f"{self._config.api_base_url.rstrip('/')}/{method}"
        headers = {"Authorization": f"Bearer {self._config.bot_token}"}

        try:
            if http_method == "GET":
                response = self._send("GET", url, params=payload, headers=headers)
            else:
                response = self._send("POST", url, json=payload, headers=headers)
            data = response.json()
        except httpx.HTTPStatusError as e:
            logger.error(f"HTTP error calling Slack {method}: {e}")
            raise SlackAPIError(f"HTTP error: {e.response.status_code}") from e
        except httpx.RequestError as e:
            logger.error(f"Request error calling Slack {method}: {e}")
            raise SlackAPIError(f"Request failed: {str(e)}") from e
        except ValueError as e:
            raise SlackAPIError(f"Invalid JSON from Slack {method}") from e

        if not isinstance(data, dict) or not data.get("ok"):
            error = data.get("error", "unknown_error") if isinstance(data, dict) else "invalid_response"
            logger.error(f"Slack {method} failed: {error}")
            raise SlackAPIError(f"Slack {method} failed: {error}")

        return data

    def post_message(
        self,
        channel: str,
        text: Optional[str] = None,
        blocks: Optional[list[dict[str, Any]]] = None,
        thread_ts: Optional[str] = None,
    ) -> dict[str, Any]:
        """
        Post a message, optionally into a thread.

        Args:
            channel: Channel id.
            text: Plain text, also used as the notification fallback for blocks.
            blocks: Block Kit blocks.
            thread_ts: Parent message timestamp.

        Returns:
            The ``chat.postMessage`` response payload.
        """
        payload: dict[str, Any] = {"channel": channel}
        if text:
            payload["text"] = text
        if blocks:
            payload["blocks"] = blocks
        if thread_ts:
            payload["thread_ts"] = thread_ts

        logger.debug(f"Posting message to {channel} (thread {thread_ts})")
        return self._call("chat.postMessage", payload)

    def get_user_email(self, user_id: str) -> Optional[str]:
        """Return the profile email of a Slack user, if the profile has one."""
        data = self._call("users.info", {"user": user_id}, http_method="GET")
        profile = (data.get("user") or {}).get("profile") or {}
        email = profile.get("email")
        return email.strip() if email else None

    def respond(
        self,
        response_url: str,
        text: str,
        replace_original: bool = True,
        ephemeral: bool = False,
    ) -> None:
        """
        Answer an interaction through its response URL.

        Args:
            response_url: URL from the interaction payload.
            text: Message text.
            replace_original: Replace the message that holds the clicked button.
            ephemeral: Show the answer only to the user who clicked.

        Raises:
            SlackAPIError: If the response URL rejects the message or cannot
                be reached.
        """
        self._require_client()
        payload: dict[str, Any] = {"text": text, "replace_original": replace_original}
        if ephemeral:
            payload["response_type"] = "ephemeral"

        try:
            self._send("POST", response_url, json=payload)
        except httpx.HTTPStatusError as e:
            logger.error(f"HTTP error answering interaction: {e}")
            raise SlackAPIError(f"HTTP error: {e.response.status_code}") from e
        except httpx.RequestError as e:
            logger.error(f"Request error answering interaction: {e}")
            raise SlackAPIError(f"Request failed: {str(e)}") from e
