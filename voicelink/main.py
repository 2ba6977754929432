from __future__ import annotations

import asyncio
import logging
import signal

from voicelink.config import Config
from voicelink.core.protocol import McpHandler
from voicelink.core.session_store import SessionStore
from voicelink.web.server import VoiceServer

LOG_FILE = "/tmp/voicelink.log"

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    handlers=[
        logging.StreamHandler(),
        logging.FileHandler(LOG_FILE),
    ],
)
logger = logging.getLogger("voicelink")


async def main() -> None:
    logger.info("voicelink starting...")

    config = Config.from_env()

    if config.stt_provider == "siliconflow" and not config.siliconflow_api_key:
        logger.warning("SILICONFLOW_API_KEY is not set; every transcription will fail")
    stt = config.build_stt()
    logger.info("Transcription backend: %s (%s)", config.stt_provider, config.stt_model)

    store = SessionStore(max_age=config.session_max_age)
    mcp = McpHandler(
        store,
        base_url=config.base_url,
        poll_interval=config.poll_interval,
        wait_timeout=config.wait_timeout,
    )
    server = VoiceServer(
        store, stt, mcp,
        host=config.host,
        port=config.port,
        sweep_interval=config.sweep_interval,
        max_upload_size=config.max_upload_size,
    )

    # Handle shutdown signals
    stop_event = asyncio.Event()

    def handle_signal() -> None:
        logger.info("Shutdown signal received")
        stop_event.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, handle_signal)

    await server.start()
    logger.info("Recording links use base URL %s", config.base_url)

    await stop_event.wait()

    logger.info("Shutting down...")
    await server.stop()
    logger.info("voicelink stopped.")


def run() -> None:
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    run()
