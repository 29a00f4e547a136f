"""HTTP exposition of the metrics registry using FastAPI."""
import logging

import uvicorn
from fastapi import FastAPI, HTTPException, Response
from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, generate_latest

from tailscale_exporter.errors import TailscaleError

logger = logging.getLogger(__name__)


class MetricsServer:
    """Serves ``GET /metrics`` from an explicit registry."""

    def __init__(self, registry: CollectorRegistry, host: str = "127.0.0.1", port: int = 9995):
        """
        Initialize metrics server.

        Args:
            registry: Registry holding the collectors to expose
            host: Address to bind to
            port: Port to bind to
        """
        self.registry = registry
        self.host = host
        self.port = port
        self.app = FastAPI(title="Tailscale Exporter", docs_url=None, redoc_url=None, openapi_url=None)

        self._server = uvicorn.Server(
            uvicorn.Config(
                self.app,
                host=host,
                port=port,
                log_config=None,  # use the root logging setup
                access_log=False,
            )
        )

        self._setup_routes()

    def _setup_routes(self):
        """Setup API routes."""

        @self.app.get("/metrics")
        def metrics():
            """Render the text exposition; a failed status fetch fails the scrape."""
            try:
                output = generate_latest(self.registry)
            except TailscaleError as e:
                # Fetch errors and MissingAddress fail this scrape only; the process keeps serving
                logger.error(f"Scrape failed: {e}")
                raise HTTPException(status_code=503, detail=str(e))
            return Response(content=output, media_type=CONTENT_TYPE_LATEST)

    @property
    def listen(self) -> str:
        if ":" in self.host:
            return f"[{self.host}]:{self.port}"
        return f"{self.host}:{self.port}"

    def run(self):
        """Run the server; blocks until shutdown() or a signal."""
        logger.info(f"Metrics server listening on {self.listen}/metrics")
        self._server.run()

    def shutdown(self):
        """Ask the running server to exit."""
        self._server.should_exit = True
