"""HTTP surface — MCP endpoint, recording page, upload and status API.

All routes share one SessionStore; the MCP handler polls it in-process
while the upload route drives transcription and moves sessions forward.
"""
from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Awaitable, Callable

from aiohttp import web

from voicelink.audio.wav import read_wav_header
from voicelink.core.errors import NotFoundError, VoiceLinkError
from voicelink.core.protocol import McpHandler, parse_error_response
from voicelink.core.session_store import SessionStatus, SessionStore
from voicelink.voice.port import STTPort

logger = logging.getLogger(__name__)

_HTML_PATH = Path(__file__).parent / "record.html"
_SESSION_PLACEHOLDER = "__SESSION_ID__"

DEMO_PATH = "/record/demo"

# A full wait window of 48 kHz mono PCM16 is ~5.8 MB.
DEFAULT_MAX_UPLOAD_SIZE = 16 * 1024 * 1024

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization",
}

STORE_KEY = web.AppKey("store", SessionStore)
STT_KEY = web.AppKey("stt", STTPort)
MCP_KEY = web.AppKey("mcp", McpHandler)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def render_record_page(session_id: str) -> str:
    """Recording page with *session_id* embedded as a JS string literal."""
    literal = json.dumps(session_id).replace("</", "<\\/")
    html = _HTML_PATH.read_text(encoding="utf-8")
    return html.replace(_SESSION_PLACEHOLDER, literal)


def _error_response(error: VoiceLinkError) -> web.Response:
    return web.json_response({"error": error.message}, status=error.status_code)


@web.middleware
async def cors_middleware(request: web.Request, handler) -> web.StreamResponse:
    if request.method == "OPTIONS":
        return web.Response(status=204, headers=CORS_HEADERS)
    try:
        response = await handler(request)
    except web.HTTPException as e:
        e.headers.update(CORS_HEADERS)
        raise
    response.headers.update(CORS_HEADERS)
    return response


# ---------------------------------------------------------------------------
# Route handlers
# ---------------------------------------------------------------------------

async def _handle_root(request: web.Request) -> web.Response:
    raise web.HTTPFound(DEMO_PATH)


async def _handle_mcp(request: web.Request) -> web.Response:
    """POST /mcp — JSON-RPC over a single HTTP request/response."""
    mcp = request.app[MCP_KEY]
    try:
        message = await request.json()
    except ValueError:
        return web.json_response(parse_error_response(), status=400)

    response = await mcp.handle(message)
    if response is None:
        return web.Response(status=202)
    return web.json_response(response)


async def _handle_record(request: web.Request) -> web.Response:
    """GET /record/{session_id}"""
    html = render_record_page(request.match_info["session_id"])
    return web.Response(text=html, content_type="text/html", charset="utf-8")


async def _handle_upload(request: web.Request) -> web.Response:
    """POST /api/upload/{session_id} — raw WAV body, transcribed in-line."""
    store = request.app[STORE_KEY]
    stt = request.app[STT_KEY]
    session_id = request.match_info["session_id"]

    session = store.get(session_id)
    if session is None:
        logger.warning("Upload for unknown session %s", session_id)
        return _error_response(NotFoundError(session_id))
    if session.status is not SessionStatus.WAITING:
        return web.json_response(
            {"error": f"Session is already {session.status.value}"}, status=409,
        )

    store.begin_processing(session_id)
    return await _transcribe_upload(store, stt, session_id, request.read)


async def _transcribe_upload(
    store: SessionStore,
    stt: STTPort,
    session_id: str,
    read_body: Callable[[], Awaitable[bytes]],
) -> web.Response:
    """Read, validate and transcribe the body of a session already in ``processing``."""
    try:
        audio = await read_body()
        store.attach_audio(session_id, audio)
        info = read_wav_header(audio)
        logger.info(
            "Session %s: received %.1fs of audio (%d Hz)",
            session_id, info.duration, info.sample_rate,
        )
        text = await stt.transcribe(audio)
        store.complete(session_id, text)
    except NotFoundError as e:
        logger.warning("Session %s expired during transcription", session_id)
        return _error_response(e)
    except VoiceLinkError as e:
        logger.warning("Session %s failed: %s", session_id, e.message)
        _record_failure(store, session_id, e.message)
        return _error_response(e)
    except web.HTTPRequestEntityTooLarge as e:
        message = e.text or "Recording too large"
        logger.warning("Session %s failed: %s", session_id, message)
        _record_failure(store, session_id, message)
        return web.json_response({"error": message}, status=413)
    except asyncio.CancelledError:
        logger.info("Upload for session %s cancelled", session_id)
        _record_failure(store, session_id, "Upload cancelled")
        raise
    except Exception as e:
        logger.exception("Unexpected error while processing session %s", session_id)
        message = str(e) or type(e).__name__
        _record_failure(store, session_id, message)
        return web.json_response({"error": message}, status=500)

    return web.json_response({"success": True, "result": text})


def _record_failure(store: SessionStore, session_id: str, message: str) -> None:
    try:
        store.fail(session_id, message)
    except VoiceLinkError:
        logger.debug("Could not mark session %s as failed", session_id)


async def _handle_status(request: web.Request) -> web.Response:
    """GET /api/status/{session_id}"""
    store = request.app[STORE_KEY]
    session_id = request.match_info["session_id"]
    session = store.get(session_id)
    if session is None:
        return _error_response(NotFoundError(session_id))
    return web.json_response(session.snapshot())


# ---------------------------------------------------------------------------
# App factory & server class
# ---------------------------------------------------------------------------

def build_app(
    store: SessionStore,
    stt: STTPort,
    mcp: McpHandler,
    max_upload_size: int = DEFAULT_MAX_UPLOAD_SIZE,
) -> web.Application:
    app = web.Application(
        middlewares=[cors_middleware], client_max_size=max_upload_size,
    )
    app[STORE_KEY] = store
    app[STT_KEY] = stt
    app[MCP_KEY] = mcp

    app.router.add_get("/", _handle_root)
    app.router.add_post("/mcp", _handle_mcp)
    app.router.add_get("/record/{session_id}", _handle_record)
    app.router.add_post("/api/upload/{session_id}", _handle_upload)
    app.router.add_get("/api/status/{session_id}", _handle_status)
    return app


class VoiceServer:
    """aiohttp-based server plus the periodic session sweeper."""

    def __init__(
        self,
        store: SessionStore,
        stt: STTPort,
        mcp: McpHandler,
        host: str = "0.0.0.0",
        port: int = 8000,
        sweep_interval: float = 60.0,
        max_upload_size: int = DEFAULT_MAX_UPLOAD_SIZE,
    ) -> None:
        self._store = store
        self._app = build_app(store, stt, mcp, max_upload_size)
        self._host = host
        self._port = port
        self._sweep_interval = sweep_interval
        self._runner: web.AppRunner | None = None
        self._sweeper: asyncio.Task | None = None

    @property
    def app(self) -> web.Application:
        return self._app

    async def start(self) -> None:
        self._runner = web.AppRunner(self._app)
        await self._runner.setup()
        site = web.TCPSite(self._runner, self._host, self._port)
        await site.start()
        if self._sweep_interval > 0:
            self._sweeper = asyncio.create_task(self._sweep_loop())
        logger.info("Voice server running at http://%s:%d", self._host, self._port)

    async def stop(self) -> None:
        if self._sweeper:
            self._sweeper.cancel()
            try:
                await self._sweeper
            except asyncio.CancelledError:
                pass
            self._sweeper = None
        if self._runner:
            await self._runner.cleanup()
            self._runner = None
            logger.info("Voice server stopped")

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self._sweep_interval)
            self._store.sweep()
