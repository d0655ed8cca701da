"""Modelos de dados dos processos reportados pelo ``pm2 jlist``.

``ProcessRecord`` representa um processo gerido pelo pm2 num ciclo de coleta;
``Snapshot`` agrupa a lista completa de um ciclo com o instante da coleta.
Ambos são imutáveis: um novo ciclo substitui o snapshot inteiro, nunca o altera.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Mapping


# ========================
# 1. Conversões tolerantes a ausência
# ========================


def _as_str(raw: Any, key: str) -> str:
    """Converte ``raw`` para str; ausente/null vira string vazia."""
    if raw is None:
        return ""
    if not isinstance(raw, str):
        raise ValueError(f"campo {key!r} deve ser string, recebido {type(raw).__name__}")
    return raw


def _as_int(raw: Any, key: str) -> int:
    """Converte ``raw`` para int; aceita floats com valor inteiro (ex.: 1024.0)."""
    if raw is None:
        return 0
    # bool é subclasse de int, mas true/false no JSON não é um número
    if isinstance(raw, bool):
        raise ValueError(f"campo {key!r} deve ser inteiro, recebido bool")
    if isinstance(raw, int):
        return raw
    if isinstance(raw, float) and raw.is_integer():
        return int(raw)
    raise ValueError(f"campo {key!r} deve ser inteiro, recebido {raw!r}")


def _as_float(raw: Any, key: str) -> float:
    if raw is None:
        return 0.0
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        raise ValueError(f"campo {key!r} deve ser numérico, recebido {raw!r}")
    return float(raw)


def _section(obj: Mapping[str, Any], key: str) -> Mapping[str, Any]:
    """Retorna o sub-objeto ``obj[key]`` ou um dict vazio quando ausente/null."""
    sub = obj.get(key)
    if sub is None:
        return {}
    if not isinstance(sub, dict):
        raise ValueError(f"campo {key!r} deve ser um objeto, recebido {type(sub).__name__}")
    return sub


# ========================
# 2. Registos de processo e snapshot
# ========================


@dataclass(frozen=True)
class ProcessRecord:
    """Estado de um processo pm2 num ciclo de coleta.

    Campos de versionamento ausentes são representados por string vazia e
    campos numéricos ausentes por zero.
    """

    name: str
    pid: int
    status: str = ""
    versioning_type: str = ""
    versioning_url: str = ""
    branch: str = ""
    revision: str = ""
    comment: str = ""
    memory_bytes: int = 0
    cpu_percent: float = 0.0
    created_at_ms: int = 0
    pm_uptime_ms: int = 0
    restart_count: int = 0

    @property
    def is_online(self) -> bool:
        return self.status == "online"

    @classmethod
    def from_pm2(cls, obj: Mapping[str, Any]) -> "ProcessRecord":
        """Constrói um ``ProcessRecord`` a partir de um elemento do ``pm2 jlist``.

        Chaves ausentes ou ``null`` viram zero/vazio; valores presentes com tipo
        errado levantam ``ValueError``.
        """
        if not isinstance(obj, dict):
            raise ValueError(f"elemento deve ser um objeto JSON, recebido {type(obj).__name__}")
        env = _section(obj, "pm2_env")
        versioning = _section(env, "versioning")
        monit = _section(obj, "monit")
        return cls(
            name=_as_str(obj.get("name"), "name"),
            pid=_as_int(obj.get("pid"), "pid"),
            status=_as_str(env.get("status"), "pm2_env.status"),
            versioning_type=_as_str(versioning.get("type"), "pm2_env.versioning.type"),
            versioning_url=_as_str(versioning.get("url"), "pm2_env.versioning.url"),
            branch=_as_str(versioning.get("branch"), "pm2_env.versioning.branch"),
            revision=_as_str(versioning.get("revision"), "pm2_env.versioning.revision"),
            comment=_as_str(versioning.get("comment"), "pm2_env.versioning.comment"),
            memory_bytes=_as_int(monit.get("memory"), "monit.memory"),
            cpu_percent=_as_float(monit.get("cpu"), "monit.cpu"),
            created_at_ms=_as_int(env.get("created_at"), "pm2_env.created_at"),
            pm_uptime_ms=_as_int(env.get("pm_uptime"), "pm2_env.pm_uptime"),
            restart_count=_as_int(env.get("restart_time"), "pm2_env.restart_time"),
        )


@dataclass(frozen=True)
class Snapshot:
    """Lista ordenada de processos de um ciclo mais o instante da coleta.

    ``fetched_at`` é ``None`` enquanto nenhuma coleta teve sucesso.
    """

    processes: tuple[ProcessRecord, ...] = field(default_factory=tuple)
    fetched_at: datetime | None = None

    @property
    def is_populated(self) -> bool:
        return self.fetched_at is not None

    @property
    def count(self) -> int:
        """Número de processos no snapshot."""
        return len(self.processes)


EMPTY_SNAPSHOT = Snapshot()
