"""MCP (JSON-RPC 2.0) request handling and the ``voice-to-text`` tool.

The tool call cannot return until a human has recorded audio in the
browser, so ``tools/call`` creates a session and polls the store until the
session reaches a terminal state or the wait ceiling passes.
"""
from __future__ import annotations

import asyncio
import logging
import time
from typing import Any

from voicelink.core.errors import ProtocolError
from voicelink.core.session_store import SessionStatus, SessionStore

logger = logging.getLogger(__name__)

PROTOCOL_VERSION = "2024-11-05"
SERVER_NAME = "voicelink"
SERVER_VERSION = "1.0.0"

TOOL_NAME = "voice-to-text"
TOOL_DESCRIPTION = (
    "Voice to text. Opens a recording link for the user; once they record "
    "in the browser the transcribed text is returned."
)

DEFAULT_POLL_INTERVAL = 0.5  # seconds
DEFAULT_WAIT_TIMEOUT = 60.0  # seconds


def _text_result(text: str, is_error: bool = False) -> dict:
    result: dict = {"content": [{"type": "text", "text": text}]}
    if is_error:
        result["isError"] = True
    return result


def parse_error_response() -> dict:
    """Envelope returned when the request body is not valid JSON."""
    err = ProtocolError(ProtocolError.PARSE_ERROR, "Parse error")
    return {"jsonrpc": "2.0", "error": err.to_dict()}


class McpHandler:
    """Dispatches JSON-RPC messages to protocol methods."""

    def __init__(
        self,
        store: SessionStore,
        base_url: str,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        wait_timeout: float = DEFAULT_WAIT_TIMEOUT,
    ) -> None:
        self._store = store
        self._base_url = base_url.rstrip("/")
        self._poll_interval = poll_interval
        self._wait_timeout = wait_timeout

    def record_url(self, session_id: str) -> str:
        return f"{self._base_url}/record/{session_id}"

    async def handle(self, message: Any) -> dict | None:
        """Handle one decoded JSON-RPC message.

        Returns the response envelope, or ``None`` for notifications,
        which get no reply.
        """
        if not isinstance(message, dict):
            err = ProtocolError(ProtocolError.INVALID_REQUEST, "Invalid Request")
            return {"jsonrpc": "2.0", "id": None, "error": err.to_dict()}

        msg_id = message.get("id")
        method = message.get("method")
        params = message.get("params") or {}

        if msg_id is None and isinstance(method, str) and method.startswith("notifications/"):
            logger.debug("Notification received: %s", method)
            return None

        try:
            if not isinstance(method, str):
                raise ProtocolError(ProtocolError.INVALID_REQUEST, "Invalid Request")
            if not isinstance(params, dict):
                raise ProtocolError(ProtocolError.INVALID_PARAMS, "params must be an object")
            result = await self._dispatch(method, params)
        except ProtocolError as e:
            return {"jsonrpc": "2.0", "id": msg_id, "error": e.to_dict()}
        return {"jsonrpc": "2.0", "id": msg_id, "result": result}

    async def _dispatch(self, method: str, params: dict) -> dict:
        if method == "initialize":
            return self._initialize()
        if method == "tools/list":
            return self._tools_list()
        if method == "tools/call":
            return await self._tools_call(params)
        if method == "ping":
            return {}
        raise ProtocolError(ProtocolError.METHOD_NOT_FOUND, f"Method not found: {method}")

    # -- Methods ------------------------------------------------------------

    @staticmethod
    def _initialize() -> dict:
        return {
            "protocolVersion": PROTOCOL_VERSION,
            "capabilities": {"tools": {}},
            "serverInfo": {"name": SERVER_NAME, "version": SERVER_VERSION},
        }

    @staticmethod
    def _tools_list() -> dict:
        return {
            "tools": [
                {
                    "name": TOOL_NAME,
                    "description": TOOL_DESCRIPTION,
                    "inputSchema": {"type": "object", "properties": {}},
                },
            ],
        }

    async def _tools_call(self, params: dict) -> dict:
        name = params.get("name")
        if name != TOOL_NAME:
            raise ProtocolError(ProtocolError.METHOD_NOT_FOUND, f"Unknown tool: {name}")
        return await self.voice_to_text()

    async def voice_to_text(self) -> dict:
        """Create a session and wait for the browser to finish it."""
        self._store.sweep()
        session_id = self._store.create()
        url = self.record_url(session_id)
        logger.info("Waiting for recording at %s", url)
        try:
            return await self._wait_for_session(session_id, url)
        except asyncio.CancelledError:
            self._store.delete(session_id)
            logger.info("Tool call cancelled, dropped session %s", session_id)
            raise

    async def _wait_for_session(self, session_id: str, url: str) -> dict:
        started = time.monotonic()
        while True:
            session = self._store.get(session_id)
            if session is None:
                logger.info("Session %s expired while waiting", session_id)
                return _text_result("Session expired, please try again.", is_error=True)

            if session.status is SessionStatus.COMPLETED:
                text = session.result or ""
                self._store.delete(session_id)
                logger.info("Session %s completed", session_id)
                if not text:
                    return _text_result("Transcription: (no speech detected)")
                return _text_result(f"Transcription: {text}")

            if session.status is SessionStatus.ERROR:
                error = session.error or "Unknown error"
                self._store.delete(session_id)
                logger.info("Session %s failed: %s", session_id, error)
                return _text_result(f"Transcription failed: {error}", is_error=True)

            elapsed = time.monotonic() - started
            if elapsed >= self._wait_timeout:
                self._store.delete(session_id)
                logger.info("Session %s timed out after %.1fs", session_id, elapsed)
                return _text_result(
                    f"Recording timed out ({self._wait_timeout:g}s). "
                    f"Open this link to record: {url}"
                )

            await asyncio.sleep(min(self._poll_interval, self._wait_timeout - elapsed))
