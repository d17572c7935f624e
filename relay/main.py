"""Application entry point and bootstrap.

This module initializes all relay components, wires dependencies, and
provides the main entry point for running the relay.
"""

import asyncio
import logging
import signal
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, HTTPException

from relay.config import RelayConfig, resolve_repo_path
from relay.conversation import ConversationHistoryStore, ConversationQueue
from relay.observability import configure_tracing, setup_error_log_file
from relay.observability.health_state import build_health_snapshot
from relay.scheduler import CircuitBreaker, ProcessingLoop, RetryExecutor
from relay.services import (
    ConversationResponder,
    ImageDescriptionService,
    PostCaptureService,
    ResponseService,
)
from relay.services.model_factory import ModelFactory
from relay.telegram.bot import TelegramRelayBot
from relay.telegram.message_sender import TelegramMessageSender

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
logger = logging.getLogger(__name__)

# Suppress verbose HTTP request logs from telegram bot
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("telegram").setLevel(logging.WARNING)


class Application:
    """Main application container.

    Owns the scheduler state (breaker, loop) and every collaborator, and
    manages their lifecycle.
    """

    def __init__(self, config: RelayConfig) -> None:
        """Initialize the application with configuration.

        Args:
            config: Relay configuration.
        """
        self.config = config
        self._shutdown_event = asyncio.Event()

        self.queue: ConversationQueue | None = None
        self.history: ConversationHistoryStore | None = None
        self.circuit_breaker: CircuitBreaker | None = None
        self.executor: RetryExecutor | None = None
        self.processing_loop: ProcessingLoop | None = None
        self.telegram_bot: TelegramRelayBot | None = None
        self.fastapi_app: FastAPI | None = None

    def setup(self) -> None:
        """Construct and wire all components."""
        logger.info("Setting up relay components...")

        setup_error_log_file(self.config)
        configure_tracing(
            enabled=self.config.trace_enabled,
            max_chars=self.config.trace_max_chars,
        )

        self.queue = ConversationQueue()
        self.history = ConversationHistoryStore(max_length=self.config.max_history_length)

        model_factory = ModelFactory(self.config)
        image_descriptions = ImageDescriptionService(model_factory.create)

        post_capture = None
        if self.config.post_capture_enabled:
            post_capture = PostCaptureService(resolve_repo_path(self.config.post_capture_path))
            post_capture.initialize()

        self.telegram_bot = TelegramRelayBot(
            config=self.config,
            queue=self.queue,
            history=self.history,
            image_descriptions=image_descriptions,
            post_capture=post_capture,
        )

        responder = ConversationResponder(
            generator=ResponseService(
                history=self.history,
                create_model=model_factory.create,
                system_prompt=self.config.response_system_prompt,
            ),
            channel=TelegramMessageSender(self.telegram_bot.application.bot),
        )

        self.circuit_breaker = CircuitBreaker(
            max_failures=self.config.circuit_breaker_max_failures,
            timeout=self.config.circuit_breaker_timeout_seconds,
        )
        self.executor = RetryExecutor(
            self.circuit_breaker,
            max_retries=self.config.max_retries,
            base_delay=self.config.retry_base_delay_seconds,
            max_delay=self.config.retry_max_delay_seconds,
            jitter=self.config.retry_jitter_seconds,
        )
        self.processing_loop = ProcessingLoop(
            queue=self.queue,
            history=self.history,
            circuit_breaker=self.circuit_breaker,
            executor=self.executor,
            respond=responder.respond,
            polling_interval=self.config.polling_interval_seconds,
            initial_delay=self.config.initial_delay_seconds,
            max_consecutive_errors=self.config.max_consecutive_errors,
            restart_cooldown=self.config.restart_cooldown_seconds,
        )

        logger.info("Relay setup complete")

    def create_fastapi_app(self) -> FastAPI:
        """Create the FastAPI app serving the health endpoint."""

        @asynccontextmanager
        async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
            logger.info("FastAPI application starting...")
            yield
            logger.info("FastAPI application shutting down...")

        self.fastapi_app = FastAPI(
            title="Chat Relay",
            description="Telegram chat relay with a resilient processing scheduler",
            version="1.0.0",
            lifespan=lifespan,
        )

        @self.fastapi_app.get("/health")
        async def health_check():
            """Loop and circuit breaker state; 503 when the loop is down for good."""
            snap = self.health_snapshot()
            if snap.status == "stopped":
                raise HTTPException(status_code=503, detail=snap.to_dict())
            return snap.to_dict()

        return self.fastapi_app

    def health_snapshot(self):
        if self.processing_loop is None or self.circuit_breaker is None:
            raise RuntimeError("Application not set up")
        return build_health_snapshot(
            loop=self.processing_loop.snapshot(),
            breaker=self.circuit_breaker.snapshot(),
            conversations=len(self.queue) if self.queue is not None else 0,
        )

    async def start_background_services(self) -> None:
        """Start the Telegram bot, then the processing loop."""
        logger.info("Starting background services...")

        # The loop delivers through the bot, so the bot goes first
        if self.telegram_bot:
            await self.telegram_bot.start()

        if self.processing_loop:
            self.processing_loop.start()

    async def shutdown(self) -> None:
        """Gracefully stop the loop and the bot."""
        if self._shutdown_event.is_set():
            return
        logger.info("Initiating graceful shutdown...")
        self._shutdown_event.set()

        if self.processing_loop:
            await self.processing_loop.shutdown()
            logger.info("Processing loop stopped")

        if self.telegram_bot:
            await self.telegram_bot.stop()

        logger.info("Graceful shutdown complete")

    def setup_signal_handlers(self) -> None:
        """Register SIGINT/SIGTERM handlers that trigger a graceful shutdown."""
        loop = asyncio.get_running_loop()

        def signal_handler(sig: signal.Signals) -> None:
            logger.info("Received signal %s, initiating shutdown...", sig.name)
            asyncio.create_task(self.shutdown())

        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, lambda s=sig: signal_handler(s))

        logger.info("Signal handlers registered")


def create_app(config: RelayConfig | None = None) -> Application:
    """Create and set up the application.

    Args:
        config: Optional configuration. If not provided, loads from
                config.json with environment variable overrides.
    """
    if config is None:
        config = RelayConfig.from_json_file()

    app = Application(config)
    app.setup()
    app.create_fastapi_app()
    return app


async def main() -> None:
    """Run the relay until the HTTP server exits."""
    import uvicorn

    logger.info("Starting chat relay...")

    app: Application | None = None
    try:
        config = RelayConfig.from_json_file()
        logger.info("Configuration loaded")

        app = create_app(config)
        await app.start_background_services()

        server = uvicorn.Server(
            uvicorn.Config(
                app.fastapi_app,
                host=config.api_host,
                port=config.api_port,
                log_level="info",
            )
        )
        # uvicorn's own handlers would bypass our graceful shutdown
        server.install_signal_handlers = lambda: None
        app.setup_signal_handlers()

        serve_task = asyncio.create_task(server.serve())
        await app._shutdown_event.wait()
        server.should_exit = True
        await serve_task

    except Exception as e:
        logger.exception("Application error: %s", e)
        raise
    finally:
        if app is not None:
            await app.shutdown()


if __name__ == "__main__":
    asyncio.run(main())
