"""Renderização do snapshot do pm2 no formato de exposição do Prometheus.

Cada família de métrica é emitida com uma linha ``# HELP``, uma linha
``# TYPE <nome> gauge`` e uma amostra por processo, na ordem do snapshot.
A função é pura: o mesmo snapshot com o mesmo ``now_ms`` produz sempre o
mesmo texto.
"""

import time
from typing import Callable, NamedTuple

from ..pm2.models import ProcessRecord, Snapshot


class MetricFamily(NamedTuple):
    """Família de métrica: nome, texto HELP e função que gera a amostra."""

    name: str
    help: str
    # (registo, now_ms) -> (labels extra, valor já formatado)
    sample: Callable[[ProcessRecord, int], tuple[list[tuple[str, str]], str]]


# ========================
# 1. Sanitização de labels
# ========================


def sanitize_label_value(value: str) -> str:
    r"""Prepara um valor de label para o formato de texto do Prometheus.

    Quebras de linha, ``\r`` e tabs viram um espaço; barras invertidas e aspas
    são escapadas, para a saída continuar orientada a linhas.
    """
    value = value.replace("\n", " ").replace("\r", " ").replace("\t", " ")
    value = value.replace("\\", "\\\\")
    return value.replace('"', '\\"')


def _format_labels(proc: ProcessRecord, extra: list[tuple[str, str]]) -> str:
    pairs = [("process", proc.name), ("pid", str(proc.pid))] + extra
    return ",".join(f'{k}="{sanitize_label_value(v)}"' for k, v in pairs)


# ========================
# 2. Valores por família
# ========================


def _status_sample(proc: ProcessRecord, now_ms: int):
    return [("status", proc.status)], "1" if proc.is_online else "0"


def _branch_sample(proc: ProcessRecord, now_ms: int):
    labels = [("branch", proc.branch), ("revision", proc.revision), ("comment", proc.comment)]
    return labels, "1" if proc.branch else "0"


def _memory_sample(proc: ProcessRecord, now_ms: int):
    return [], str(proc.memory_bytes)


def _cpu_sample(proc: ProcessRecord, now_ms: int):
    return [], f"{proc.cpu_percent:.2f}"


def uptime_seconds(pm_uptime_ms: int, now_ms: int) -> float:
    """Segundos desde ``pm_uptime_ms``; negativo (relógio adiantado) vira 0."""
    return max(0, now_ms - pm_uptime_ms) / 1000.0


def _uptime_sample(proc: ProcessRecord, now_ms: int):
    if proc.pm_uptime_ms <= 0:
        return [], "0"
    return [], f"{uptime_seconds(proc.pm_uptime_ms, now_ms):.2f}"


def _restart_sample(proc: ProcessRecord, now_ms: int):
    return [], str(proc.restart_count)


def _created_at_sample(proc: ProcessRecord, now_ms: int):
    return [], str(proc.created_at_ms)


METRIC_FAMILIES: tuple[MetricFamily, ...] = (
    MetricFamily(
        "pm2_status",
        'PM2 App process status: 1 if "online", 0 otherwise; label "status" shows the textual status',
        _status_sample,
    ),
    MetricFamily(
        "pm2_branch_info",
        "PM2 App processes branch, revision, and comment: 1 if branch is non-empty, else 0",
        _branch_sample,
    ),
    MetricFamily("pm2_memory_bytes", "PM2 App process memory usage in bytes", _memory_sample),
    MetricFamily("pm2_cpu_percent", "PM2 App process CPU usage in percentage", _cpu_sample),
    MetricFamily(
        "pm2_uptime_seconds",
        'PM2 App process uptime in seconds (calculated from "pm_uptime")',
        _uptime_sample,
    ),
    MetricFamily("pm2_restart_count", "Number of restarts for a PM2 App process", _restart_sample),
    MetricFamily(
        "pm2_created_at_timestamp",
        "PM2 App process creation time in epoch milliseconds",
        _created_at_sample,
    ),
)


# ========================
# 3. Renderização
# ========================


def _now_ms() -> int:
    return int(time.time() * 1000)


def render_metrics(snapshot: Snapshot, now_ms: int | None = None) -> str:
    """Renderiza ``snapshot`` no formato de texto do Prometheus.

    Args:
        snapshot: snapshot a expor; uma lista vazia gera apenas os cabeçalhos.
        now_ms: instante de referência (epoch ms) para o uptime. Quando
            ``None`` usa o relógio atual.

    Returns:
        Texto com as sete famílias na ordem fixa, cada linha terminada em ``\\n``.
    """
    if now_ms is None:
        now_ms = _now_ms()

    lines: list[str] = []
    for family in METRIC_FAMILIES:
        lines.append(f"# HELP {family.name} {family.help}")
        lines.append(f"# TYPE {family.name} gauge")
        for proc in snapshot.processes:
            extra, value = family.sample(proc, now_ms)
            lines.append(f"{family.name}{{{_format_labels(proc, extra)}}} {value}")
    return "\n".join(lines) + "\n"
