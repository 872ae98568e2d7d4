"""Relay service that forwards tool invocations to the n8n webhook."""

import logging
import socket
import threading
import time
from dataclasses import dataclass
from http.cookiejar import DefaultCookiePolicy
from typing import Any, Dict, Optional

import requests

logger = logging.getLogger(__name__)


class RelayError(Exception):
    """Base class for failures talking to the automation endpoint."""

    retryable = False


class DownstreamUnreachable(RelayError):
    """The automation endpoint could not be reached or timed out."""

    retryable = True

    def __init__(self, reason: str, detail: str):
        super().__init__(detail)
        self.reason = reason  # "timeout" | "connection"
        self.detail = detail


class DownstreamRejected(RelayError):
    """The automation endpoint answered with a non-2xx status."""

    def __init__(self, status_code: int, body: Any):
        super().__init__(f"Automation endpoint returned status {status_code}")
        self.status_code = status_code
        self.body = body

    @property
    def retryable(self) -> bool:
        return self.status_code == 429 or self.status_code >= 500


@dataclass
class RelayResult:
    """Downstream response, kept byte-for-byte."""
    status_code: int
    content: bytes
    content_type: Optional[str]


def build_payload(user_id: str, tool_id: str, tool_input: Any) -> Dict[str, Any]:
    """Rename inbound fields to the shape the webhook expects."""
    return {"user": user_id, "tool": tool_id, "input": tool_input}


def _decode_body(response: requests.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text


class _OutboundCall(threading.Thread):
    """One webhook POST, body included, run off the handler thread so the
    caller can stop waiting at a fixed deadline."""

    def __init__(self, session, url, payload, headers, timeout):
        super().__init__(daemon=True)
        self.session = session
        self.url = url
        self.payload = payload
        self.headers = headers
        self.timeout = timeout
        self.response: Optional[requests.Response] = None
        self.error: Optional[Exception] = None

    def run(self):
        try:
            self.response = self.session.post(
                self.url,
                json=self.payload,
                headers=self.headers,
                timeout=self.timeout,
                allow_redirects=False,
                stream=True
            )
            self.response.content  # read the whole body here
        except Exception as e:  # handed back to the calling thread
            self.error = e
            if self.response is not None:
                self.response.close()

    def abort(self) -> None:
        """Shut the socket down so a blocked read returns now."""
        response = self.response
        if response is None:
            return
        connection = getattr(response.raw, "connection", None)
        sock = getattr(connection, "sock", None)
        if sock is None:
            return
        try:
            sock.shutdown(socket.SHUT_RDWR)
        except OSError as e:
            logger.debug("Socket already closed while aborting webhook call: %s", e)


class N8nRelayClient:
    """
    Thin client for the automation webhook.

    One instance is shared by all requests. It holds immutable configuration
    and a requests.Session used for connection reuse only: the session never
    stores cookies, so nothing one caller receives reaches another.
    """

    def __init__(
        self,
        webhook_url: str,
        token: str,
        timeout: float,
        session: Optional[requests.Session] = None
    ):
        self.webhook_url = webhook_url
        self.timeout = timeout
        self._headers = {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
        }
        self.session = session or requests.Session()
        self.session.cookies.set_policy(DefaultCookiePolicy(allowed_domains=[]))

    def trigger(self, user_id: str, tool_id: str, tool_input: Any = None) -> RelayResult:
        """
        Send a single POST to the webhook. No retries.

        `timeout` bounds the whole call, body included; when it expires the
        connection is torn down and DownstreamUnreachable("timeout") raised.
        """
        payload = build_payload(user_id, tool_id, tool_input)
        started = time.monotonic()

        call = _OutboundCall(self.session, self.webhook_url, payload, self._headers, self.timeout)
        call.start()
        call.join(self.timeout)

        if call.is_alive():
            call.abort()
            logger.warning("Tool %s for user %s timed out after %.1fs", tool_id, user_id, self.timeout)
            raise DownstreamUnreachable(
                "timeout", f"Automation endpoint did not respond within {self.timeout}s"
            )

        if call.error is not None:
            e = call.error
            if isinstance(e, requests.Timeout):
                logger.warning("Tool %s for user %s timed out after %.1fs", tool_id, user_id, self.timeout)
                raise DownstreamUnreachable("timeout", f"Automation endpoint timed out: {str(e)}") from e
            if isinstance(e, requests.RequestException):
                logger.warning("Tool %s for user %s could not reach automation endpoint: %s", tool_id, user_id, e)
                raise DownstreamUnreachable("connection", f"Automation endpoint unreachable: {str(e)}") from e
            raise e

        response = call.response
        elapsed_ms = (time.monotonic() - started) * 1000
        logger.info(
            "Tool %s for user %s -> status %d in %.0fms",
            tool_id, user_id, response.status_code, elapsed_ms
        )

        if not 200 <= response.status_code < 300:
            raise DownstreamRejected(response.status_code, _decode_body(response))

        return RelayResult(
            status_code=response.status_code,
            content=response.content,
            content_type=response.headers.get("Content-Type")
        )

    def close(self) -> None:
        self.session.close()
