"""Parser de argumentos do exporter do pm2.

Este módulo fornece um parser simples que expõe:
- endereço de escuta HTTP (--web.listen-address)
- intervalo entre execuções do ``pm2 jlist`` (--web.scrape-interval)
- rota das métricas (--web.telemetry-path)
- timeout do comando do pm2 (--pm2.timeout)
- verbosidade (-v) e opções de logging (nível e formato)

``parse_args`` retorna um ``argparse.Namespace`` já validado, consumido por
``src.main``; ``build_settings`` converte-o em ``ExporterSettings``.
"""

import argparse
from typing import Sequence

from ..config.settings import (
    DEFAULT_LISTEN_ADDRESS,
    DEFAULT_SCRAPE_INTERVAL_SEC,
    DEFAULT_TELEMETRY_PATH,
    LOG_FORMATS,
    ExporterSettings,
    validate_settings,
)

_EPILOG = """\
Métricas expostas (todas com os labels "process" e "pid"):
  pm2_status                1 se "online", 0 caso contrário (label "status")
  pm2_branch_info           1 se o branch não for vazio (labels "branch", "revision", "comment")
  pm2_memory_bytes
  pm2_cpu_percent
  pm2_uptime_seconds        calculado a partir de pm_uptime
  pm2_restart_count
  pm2_created_at_timestamp

Exemplo:
  pm2-exporter --web.listen-address=":9966" --web.scrape-interval=30
"""

# ========================
# 0. Configuração do parser e argumentos padrão
# ========================


# Função principal do módulo; cria e retorna o ArgumentParser configurado
def configure_argparser() -> argparse.ArgumentParser:
    """Cria e retorna ArgumentParser configurado para o exporter."""
    parser = argparse.ArgumentParser(
        prog="pm2-exporter",
        description=(
            "Exporter do PM2 para Prometheus: executa `pm2 jlist` periodicamente "
            "e expõe os dados como métricas."
        ),
        epilog=_EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "--web.listen-address",
        dest="listen_address",
        type=str,
        default=DEFAULT_LISTEN_ADDRESS,
        help="Endereço onde expor as métricas (ex.: :9966 ou 127.0.0.1:9966).",
    )
    parser.add_argument(
        "--web.scrape-interval",
        dest="scrape_interval",
        type=int,
        default=DEFAULT_SCRAPE_INTERVAL_SEC,
        help="Intervalo em segundos entre execuções do `pm2 jlist` em background.",
    )
    parser.add_argument(
        "--web.telemetry-path",
        dest="telemetry_path",
        type=str,
        default=DEFAULT_TELEMETRY_PATH,
        help="Rota HTTP onde as métricas do pm2 são expostas.",
    )
    parser.add_argument(
        "--pm2.timeout",
        dest="pm2_timeout",
        type=float,
        default=None,
        help="Tempo máximo (segundos) de cada execução do pm2. Padrão: o intervalo de coleta.",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Aumenta a verbosidade (-v = DEBUG)",
    )
    parser.add_argument(
        "--log-level",
        dest="log_level",
        type=str,
        default=None,
        help="Nível de logging (DEBUG/INFO/WARNING/ERROR). Se ausente, definido por -v",
    )
    parser.add_argument(
        "--log-format",
        dest="log_format",
        choices=LOG_FORMATS,
        default="text",
        help="Formato dos logs no stderr: texto legível ou uma linha JSON por evento.",
    )

    return parser


# ========================
# 1. Funções auxiliares para análise e validação de argumentos
# ========================


# Auxilia src.main; criado para analisar argv e validar argumentos
def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Analisa argv e retorna Namespace validado para uso no programa.

    Valores inválidos terminam o programa via ``parser.error`` (código 2).
    """
    parser = configure_argparser()
    ns = parser.parse_args(argv)
    try:
        validate_args(ns)
    except ValueError as exc:
        parser.error(str(exc))
    return ns


# Auxilia parse_args; criado para garantir valores corretos e seguros
def validate_args(args: argparse.Namespace) -> None:
    """Valida os argumentos e guarda o ``ExporterSettings`` em ``args.settings``."""
    log_conf = get_log_config(args)
    args.settings = validate_settings(
        {
            "listen_address": args.listen_address,
            "scrape_interval": args.scrape_interval,
            "telemetry_path": args.telemetry_path,
            "pm2_timeout": args.pm2_timeout,
            "log_level": log_conf["level"],
            "log_format": getattr(args, "log_format", "text"),
        }
    )


def build_settings(args: argparse.Namespace) -> ExporterSettings:
    """Retorna o ``ExporterSettings`` do Namespace, validando se necessário."""
    settings = getattr(args, "settings", None)
    if not isinstance(settings, ExporterSettings):
        validate_args(args)
        settings = args.settings
    return settings


# ========================
# 2. Função auxiliar para configuração de logging
# ========================


# Auxilia src.main; criado para extrair configuração de logging dos argumentos
def get_log_config(args: argparse.Namespace) -> dict:
    """Retorna dict com configuração de logging ('level' e 'format')."""
    if getattr(args, "log_level", None):
        level = str(args.log_level).upper()
    else:
        v = getattr(args, "verbose", 0) or 0
        if v >= 1:
            level = "DEBUG"
        else:
            level = "INFO"

    return {"level": level, "format": getattr(args, "log_format", "text") or "text"}
