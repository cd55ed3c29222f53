"""
Gateway process composition and lifecycle.

Startup order: logging, engine connection, schema reconciliation, HTTP
listener. A reconciliation failure stops startup before any port is bound.
On shutdown the engine connection is closed first, then the listener, then
the worker pool.
"""

import asyncio
import contextlib
from concurrent.futures import Executor, ThreadPoolExecutor
from typing import Optional

import uvicorn
from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.middleware.gzip import GZipMiddleware

from searchgate.config import GatewayConfig, get_env
from searchgate.connectors.redisearch import RediSearchClient, create_client
from searchgate.exceptions import EngineError
from searchgate.gateway import SearchGateway, TokenAuth
from searchgate.logging_config import configure_logging, get_logger
from searchgate.middleware import CorrelationIdMiddleware, ErrorBoundaryMiddleware
from searchgate.schema_sync import SchemaReconciler

logger = get_logger(__name__)

GZIP_MINIMUM_SIZE = 1024


async def poll_engine_keepalive(engine, executor: Executor, interval: float) -> None:
    """Background task to keep the engine connection alive."""
    loop = asyncio.get_running_loop()
    while True:
        await asyncio.sleep(interval)
        try:
            await loop.run_in_executor(executor, engine.ping)
            logger.debug("Engine keepalive ok")
        except EngineError as e:
            logger.warning(f"Engine keepalive failed: {e}")


def create_app(
    config: GatewayConfig,
    engine,
    executor: Executor,
) -> Starlette:
    """Build the ASGI application serving the gateway routes."""
    gateway = SearchGateway(
        engine=engine,
        auth=TokenAuth(config.submission_token),
        executor=executor,
        cors_allow_origins=config.cors_allow_origins,
    )

    @contextlib.asynccontextmanager
    async def lifespan(app):
        task = None
        if config.keepalive_seconds > 0:
            task = asyncio.create_task(
                poll_engine_keepalive(engine, executor, config.keepalive_seconds)
            )
        yield
        if task:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

    middleware = [
        Middleware(CorrelationIdMiddleware),
        Middleware(ErrorBoundaryMiddleware),
        Middleware(GZipMiddleware, minimum_size=GZIP_MINIMUM_SIZE),
    ]

    return Starlette(
        debug=False,
        routes=gateway.routes(config.root_path),
        middleware=middleware,
        lifespan=lifespan,
    )


class _GatewayServer(uvicorn.Server):
    """uvicorn server that releases the engine before the listener stops."""

    def __init__(self, config: uvicorn.Config, on_exit):
        super().__init__(config)
        self._on_exit = on_exit

    def handle_exit(self, sig, frame) -> None:
        self._on_exit()
        super().handle_exit(sig, frame)


class GatewayService:
    """
    Top-level gateway process.

    Owns the engine client and worker pool for the lifetime of run().
    """

    def __init__(self, config: GatewayConfig, engine: Optional[RediSearchClient] = None):
        self.config = config
        self.engine = engine
        self.executor: Optional[ThreadPoolExecutor] = None
        self._engine_closed = False

    def _connect(self) -> RediSearchClient:
        host, port = self.config.redis_address
        return create_client(
            self.config.index,
            self.config.prefix,
            host=host,
            port=port,
            timeout_seconds=self.config.redis_timeout_seconds,
        )

    def reconcile_schema(self) -> None:
        """Bring the live index up to the declared schema (raises SchemaSyncError)."""
        result = SchemaReconciler(self.engine, self.config.index_schema.fields).reconcile()
        if result.created:
            logger.info(f"Index {self.config.index} created")
        elif result.added_fields:
            logger.info(f"Index {self.config.index} extended with {result.added_fields}")

    def close_engine(self) -> None:
        if self.engine is not None and not self._engine_closed:
            logger.info("Closing engine connection")
            self._engine_closed = True
            self.engine.close()

    def build_app(self) -> Starlette:
        self.executor = ThreadPoolExecutor(
            max_workers=self.config.worker_threads,
            thread_name_prefix="gateway-worker",
        )
        return create_app(self.config, self.engine, self.executor)

    def run(self) -> None:
        """Start the gateway and block until shutdown."""
        if self.engine is None:
            self.engine = self._connect()

        try:
            self.reconcile_schema()
            app = self.build_app()

            host, port = self.config.bind
            server = _GatewayServer(
                uvicorn.Config(
                    app,
                    host=host,
                    port=port,
                    log_level=(get_env("LOG_LEVEL") or "info").lower(),
                    access_log=False,
                ),
                on_exit=self.close_engine,
            )
            logger.info(f"Server starting on {host}:{port}{self.config.root_path}")
            server.run()
        finally:
            self.close_engine()
            if self.executor is not None:
                self.executor.shutdown(wait=False)
            logger.info("Gateway stopped")


def setup_logging() -> None:
    """Configure logging from the environment (.env is loaded by config)."""
    configure_logging(
        log_level=get_env("LOG_LEVEL") or "INFO",
        enable_file_logging=(get_env("LOG_TO_FILE") or "").lower() in ("1", "true", "yes"),
    )
