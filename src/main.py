"""Ponto de entrada do exporter do PM2 para Prometheus.

Este módulo realiza a inicialização da aplicação: parsing de argumentos CLI,
configuração de logging, arranque do poller do pm2 em background e do
servidor HTTP no thread principal. A lógica de runtime fica em `core`,
`pm2` e `exporter` para facilitar testes e reutilização.
"""

import json as _json
import logging as _logging
import sys

from .core.args import build_settings, get_log_config, parse_args
from .core.poller import Poller
from .exporter.main_http import create_server, run_http_server
from .exporter.telemetry import ExporterTelemetry
from .pm2.collector import PM2Collector
from .pm2.state import SnapshotStore

_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def main(argv: list[str] | None = None) -> None:
    """Inicializa a aplicação e serve as métricas até ser interrompida.

    Args:
        argv: Lista de argumentos (usada em testes). Quando ``None`` a função
            utiliza os argumentos de linha de comando do processo.

    Falhar o bind do endereço de escuta é fatal: regista em CRITICAL e
    termina com código 1.
    """
    args = parse_args(argv)
    settings = build_settings(args)
    _setup_logging(get_log_config(args))
    logger = _logging.getLogger(__name__)

    store = SnapshotStore()
    telemetry = ExporterTelemetry()
    collector = PM2Collector(store, timeout=settings.pm2_timeout)
    poller = Poller(collector, settings.scrape_interval, telemetry=telemetry)

    try:
        server = create_server(
            settings.host,
            settings.port,
            store,
            telemetry_path=settings.telemetry_path,
            telemetry=telemetry,
            scrape_interval=settings.scrape_interval,
        )
    except OSError as exc:
        logger.critical("Falha ao escutar em %s: %s", settings.listen_address, exc)
        sys.exit(1)

    poller.start()
    logger.info(
        "Starting PM2 exporter on %s, scraping every %d seconds...",
        settings.listen_address,
        settings.scrape_interval,
    )
    try:
        run_http_server(server)
    except KeyboardInterrupt:
        logger.info("Recebido KeyboardInterrupt, saindo...")
    finally:
        poller.stop()


def _setup_logging(log_conf: dict) -> None:
    """Configura o logger root no stderr em texto ou JSON (uma linha por evento)."""
    level = getattr(_logging, log_conf.get("level", "INFO"), _logging.INFO)
    if log_conf.get("format") == "json":
        handler = _logging.StreamHandler()
        handler.setFormatter(_get_json_formatter())
        _logging.basicConfig(level=level, handlers=[handler])
    else:
        _logging.basicConfig(level=level, format=_LOG_FORMAT)


# Auxiliares extraídas para reduzir complexidade


def _get_json_formatter():
    class _JSONFormatter(_logging.Formatter):
        def format(self, record):
            obj = {
                "ts": self.formatTime(record, "%Y-%m-%dT%H:%M:%S%z"),
                "level": record.levelname,
                "name": record.name,
                "msg": record.getMessage(),
            }
            if record.exc_info:
                obj["exc"] = self.formatException(record.exc_info)
            return _json.dumps(obj, ensure_ascii=False)

    return _JSONFormatter()


if __name__ == "__main__":
    main()
