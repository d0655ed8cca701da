"""Configurações do exporter do pm2.

Centraliza os valores padrão e a validação das opções recebidas pela linha de
comando. Não há leitura de variáveis de ambiente nem de ficheiros: a única
fonte de configuração é o parser em ``src.core.args``.

Funções públicas principais:

- ``ExporterSettings`` -> configuração imutável já validada.
- ``validate_settings()`` -> normaliza e valida um dict de opções.
- ``parse_listen_address()`` -> separa ``host:port`` em (host, porta).
"""

from dataclasses import dataclass
import logging

logger = logging.getLogger(__name__)


# ========================
# Constantes e padrões globais
# ========================

DEFAULT_LISTEN_ADDRESS = ":9966"
DEFAULT_SCRAPE_INTERVAL_SEC = 30
DEFAULT_TELEMETRY_PATH = "/metrics"
DEFAULT_LOG_LEVEL = "INFO"
LOG_FORMATS = ("text", "json")
VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

# rota das métricas internas do próprio exporter
EXPORTER_TELEMETRY_PATH = "/exporter/metrics"
HEALTH_PATH = "/health"


# ========================
# 1. Objeto de configuração
# ========================


@dataclass(frozen=True)
class ExporterSettings:
    """Configuração efetiva do exporter.

    ``pm2_timeout`` limita cada execução do ``pm2 jlist``; por padrão é igual
    ao intervalo de coleta.
    """

    listen_address: str = DEFAULT_LISTEN_ADDRESS
    scrape_interval: int = DEFAULT_SCRAPE_INTERVAL_SEC
    telemetry_path: str = DEFAULT_TELEMETRY_PATH
    pm2_timeout: float = float(DEFAULT_SCRAPE_INTERVAL_SEC)
    log_level: str = DEFAULT_LOG_LEVEL
    log_format: str = "text"

    @property
    def host(self) -> str:
        return parse_listen_address(self.listen_address)[0]

    @property
    def port(self) -> int:
        return parse_listen_address(self.listen_address)[1]


# ========================
# 2. Validação
# ========================


def parse_listen_address(address: str) -> tuple[str, int]:
    """Separa ``host:port`` em (host, porta).

    Host vazio (ex.: ``:9966``) significa todas as interfaces. Endereços IPv6
    devem vir entre colchetes (``[::1]:9966``).
    """
    if not isinstance(address, str) or ":" not in address:
        raise ValueError(f"endereço de escuta deve ter o formato host:port: {address!r}")
    host, _, raw_port = address.rpartition(":")
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    try:
        port = int(raw_port)
    except ValueError as exc:
        raise ValueError(f"porta inválida em {address!r}") from exc
    if not 0 <= port <= 65535:
        raise ValueError(f"porta fora do intervalo 0-65535 em {address!r}")
    return host, port


def _coerce_positive_int(name: str, raw) -> int:
    try:
        value = int(raw)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{name} deve ser um inteiro: {raw!r}") from exc
    if isinstance(raw, float) and not raw.is_integer():
        raise ValueError(f"{name} deve ser um inteiro: {raw!r}")
    if value <= 0:
        raise ValueError(f"{name} deve ser > 0")
    return value


def _coerce_positive_float(name: str, raw) -> float:
    try:
        value = float(raw)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{name} deve ser numérico: {raw!r}") from exc
    if value <= 0.0:
        raise ValueError(f"{name} deve ser > 0")
    return value


# Função principal de validação; normaliza e valida configurações
def validate_settings(options: dict) -> ExporterSettings:
    """Normaliza e valida um dict de opções, retornando ``ExporterSettings``.

    Chaves ausentes ou ``None`` recebem os valores padrão. Levanta
    ``ValueError`` para valores inválidos.
    """
    if not isinstance(options, dict):
        raise TypeError("options deve ser um dict")

    listen_address = options.get("listen_address") or DEFAULT_LISTEN_ADDRESS
    parse_listen_address(listen_address)

    interval_raw = options.get("scrape_interval")
    scrape_interval = _coerce_positive_int(
        "scrape_interval", DEFAULT_SCRAPE_INTERVAL_SEC if interval_raw is None else interval_raw
    )

    telemetry_path = options.get("telemetry_path") or DEFAULT_TELEMETRY_PATH
    if not telemetry_path.startswith("/"):
        raise ValueError(f"telemetry_path deve começar com '/': {telemetry_path!r}")
    if telemetry_path in (HEALTH_PATH, EXPORTER_TELEMETRY_PATH, "/"):
        raise ValueError(f"telemetry_path {telemetry_path!r} colide com uma rota reservada")

    timeout_raw = options.get("pm2_timeout")
    pm2_timeout = _coerce_positive_float("pm2_timeout", scrape_interval if timeout_raw is None else timeout_raw)

    log_level = str(options.get("log_level") or DEFAULT_LOG_LEVEL).upper()
    if log_level not in VALID_LOG_LEVELS:
        raise ValueError(f"log_level inválido: {log_level!r}")

    log_format = options.get("log_format") or "text"
    if log_format not in LOG_FORMATS:
        raise ValueError(f"log_format deve ser um de {LOG_FORMATS}: {log_format!r}")

    settings = ExporterSettings(
        listen_address=listen_address,
        scrape_interval=scrape_interval,
        telemetry_path=telemetry_path,
        pm2_timeout=pm2_timeout,
        log_level=log_level,
        log_format=log_format,
    )
    logger.debug("Configurações validadas: %s", settings)
    return settings
