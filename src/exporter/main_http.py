"""Servidor HTTP do exporter: expõe /metrics, /health e as métricas internas.

Cada pedido a ``/metrics`` renderiza de novo a partir do snapshot vivo, sem
esperar por coletas em andamento. Falhas de coleta nunca viram erro HTTP: o
último snapshot bom continua a ser servido.
"""

import json
import logging
import socket
import time
from datetime import datetime, timezone
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from urllib.parse import urlsplit

import psutil
from prometheus_client import CONTENT_TYPE_LATEST

from ..config.settings import (
    DEFAULT_SCRAPE_INTERVAL_SEC,
    DEFAULT_TELEMETRY_PATH,
    EXPORTER_TELEMETRY_PATH,
    HEALTH_PATH,
)
from ..pm2.state import SnapshotStore
from .exposition import render_metrics
from .telemetry import ExporterTelemetry

logger = logging.getLogger(__name__)

CONTENT_TYPE_EXPOSITION = "text/plain; version=0.0.4"

# snapshot mais antigo que STALE_FACTOR * intervalo é reportado como "stale"
STALE_FACTOR = 3

_INDEX_HTML = """<html>
<head><title>PM2 Exporter</title></head>
<body>
<h1>PM2 Exporter</h1>
<p><a href="{path}">Metrics</a></p>
</body>
</html>
"""


class ExporterHTTPServer(ThreadingHTTPServer):
    """``ThreadingHTTPServer`` com referências ao estado partilhado do exporter."""

    daemon_threads = True
    # dois exporters na mesma porta devem falhar no bind
    allow_reuse_port = False

    def __init__(
        self,
        server_address: tuple[str, int],
        store: SnapshotStore,
        *,
        telemetry_path: str = DEFAULT_TELEMETRY_PATH,
        telemetry: ExporterTelemetry | None = None,
        scrape_interval: float = DEFAULT_SCRAPE_INTERVAL_SEC,
    ) -> None:
        self.store = store
        self.telemetry_path = telemetry_path
        self.telemetry = telemetry
        self.scrape_interval = float(scrape_interval)
        if ":" in server_address[0]:
            self.address_family = socket.AF_INET6
        super().__init__(server_address, ExporterHandler)


class ExporterHandler(BaseHTTPRequestHandler):
    """HTTP handler para /metrics, /health, métricas internas e página inicial."""

    server: ExporterHTTPServer

    def do_GET(self):
        """Manipula requisições GET; a query string é ignorada."""
        path = urlsplit(self.path).path
        if path == self.server.telemetry_path:
            body = render_metrics(self.server.store.current()).encode("utf-8")
            self._send(200, CONTENT_TYPE_EXPOSITION, body)
        elif path == HEALTH_PATH:
            body = json.dumps(self._health_status()).encode("utf-8")
            self._send(200, "application/json", body)
        elif path == EXPORTER_TELEMETRY_PATH and self.server.telemetry is not None:
            self._send(200, CONTENT_TYPE_LATEST, self.server.telemetry.render())
        elif path == "/":
            body = _INDEX_HTML.format(path=self.server.telemetry_path).encode("utf-8")
            self._send(200, "text/html; charset=utf-8", body)
        else:
            self._send(404, "text/plain; charset=utf-8", b"404 page not found\n")

    def _send(self, status: int, content_type: str, body: bytes) -> None:
        self.send_response(status)
        self.send_header("Content-Type", content_type)
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def _health_status(self) -> dict:
        """Estado do último snapshot mais métricas do próprio processo."""
        snapshot = self.server.store.current()
        if snapshot.fetched_at is None:
            status = "starting"
            last_fetch = None
        else:
            age = (datetime.now(timezone.utc) - snapshot.fetched_at).total_seconds()
            status = "stale" if age > STALE_FACTOR * self.server.scrape_interval else "ok"
            last_fetch = snapshot.fetched_at.isoformat()
        return {
            "status": status,
            "processes": snapshot.count,
            "last_fetch": last_fetch,
            "exporter": _get_process_metrics(),
        }

    def log_message(self, format, *args):
        """Envia os logs de acesso para o logging em DEBUG em vez do stderr."""
        logger.debug("%s - %s", self.address_string(), format % args)


def _get_process_metrics() -> dict:
    """Coleta métricas do processo do exporter em tempo real."""
    proc = psutil.Process()
    metrics = {
        "cpu_percent": proc.cpu_percent(interval=0.0),
        "memory_rss_bytes": getattr(proc.memory_info(), "rss", 0),
        "uptime_seconds": float(max(0, (time.time() - proc.create_time()))),
        "num_threads": proc.num_threads(),
    }
    # nem todas as plataformas expõem num_fds
    num_fds_fn = getattr(proc, "num_fds", None)
    if callable(num_fds_fn):
        try:
            fds = num_fds_fn()
            if isinstance(fds, int):
                metrics["num_fds"] = fds
        except (psutil.Error, OSError) as exc:
            logger.debug("Falha ao obter número de descritores de arquivos: %s", exc, exc_info=True)
    return metrics


def create_server(
    addr: str,
    port: int,
    store: SnapshotStore,
    *,
    telemetry_path: str = DEFAULT_TELEMETRY_PATH,
    telemetry: ExporterTelemetry | None = None,
    scrape_interval: float = DEFAULT_SCRAPE_INTERVAL_SEC,
) -> ExporterHTTPServer:
    """Cria o servidor HTTP ligado a ``addr:port``.

    Erros de bind (``OSError``) propagam: quem chama decide se são fatais.
    """
    server = ExporterHTTPServer(
        (addr, port),
        store,
        telemetry_path=telemetry_path,
        telemetry=telemetry,
        scrape_interval=scrape_interval,
    )
    return server


def run_http_server(server: ExporterHTTPServer) -> None:
    """Serve pedidos até ``server.shutdown()`` ou KeyboardInterrupt."""
    host, port = server.server_address[:2]
    logger.info("Servindo em http://%s:%d (%s, %s)", host or "0.0.0.0", port, server.telemetry_path, HEALTH_PATH)
    try:
        server.serve_forever()
    finally:
        server.server_close()
