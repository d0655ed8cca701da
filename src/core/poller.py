"""Agendamento das coletas do pm2.

O ``Poller`` corre numa thread daemon própria: executa uma coleta logo no
arranque e depois uma a cada ``interval`` segundos, até ``stop()`` ou ao fim
do processo. O resultado só chega aos handlers HTTP através do
``SnapshotStore``; o poller nunca chama o caminho de pedidos.

Falhas de coleta são registadas e o ciclo é descartado, mantendo o último
snapshot bom. Se uma coleta ainda estiver em andamento quando outra for pedida,
a nova é ignorada (skip-if-running).
"""

import logging
import threading
import time

from ..exporter.telemetry import (
    RESULT_COLLECTION_ERROR,
    RESULT_PARSE_ERROR,
    RESULT_SUCCESS,
    RESULT_UNEXPECTED_ERROR,
    ExporterTelemetry,
)
from ..pm2.collector import CollectionError, ParseError, PM2Collector

logger = logging.getLogger(__name__)

RESULT_SKIPPED = "skipped"

# limite de caracteres da saída do pm2 copiada para os logs
_RAW_OUTPUT_LOG_LIMIT = 2048


def _truncate(text: str, limit: int = _RAW_OUTPUT_LOG_LIMIT) -> str:
    text = (text or "").strip()
    if len(text) <= limit:
        return text
    return text[:limit] + f"... ({len(text) - limit} caracteres omitidos)"


class Poller:
    """Executa ``collector.collect()`` periodicamente numa thread dedicada.

    - interval: período entre coletas em segundos, medido a partir do início
      do loop (relógio monotónico) e não do fim da coleta anterior.
    - telemetry: instrumentos internos opcionais, atualizados a cada ciclo.
    """

    def __init__(
        self,
        collector: PM2Collector,
        interval: float,
        telemetry: ExporterTelemetry | None = None,
    ) -> None:
        if interval <= 0:
            raise ValueError("interval deve ser > 0")
        self.collector = collector
        self.interval = float(interval)
        self.telemetry = telemetry
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        # guarda não bloqueante: quem não consegue o lock ignora o ciclo
        self._collect_lock = threading.Lock()

    @property
    def is_running(self) -> bool:
        """Indica se a thread de coleta está viva."""
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Inicia a thread de coleta (no-op se já estiver a correr)."""
        if self.is_running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._poll_loop, daemon=True, name="PM2Poller")
        self._thread.start()
        logger.debug("poller iniciado com intervalo de %gs", self.interval)

    def stop(self, timeout: float | None = 5.0) -> None:
        """Sinaliza a paragem e espera pela thread até ``timeout`` segundos.

        Se a thread continuar viva (coleta presa no pm2), a referência é mantida
        e ``start()`` não cria um segundo loop.
        """
        self._stop_event.set()
        if self._thread is None:
            return
        self._thread.join(timeout=timeout)
        if self._thread.is_alive():
            logger.warning("poller não terminou em %ss; coleta ainda em andamento", timeout)
        else:
            self._thread = None

    # ========================
    # 1. Um ciclo de coleta
    # ========================

    def run_once(self) -> str:
        """Executa uma coleta, registando e engolindo as falhas.

        Retorna o resultado do ciclo: ``success``, ``collection_error``,
        ``parse_error``, ``unexpected_error`` ou ``skipped``.
        """
        if not self._collect_lock.acquire(blocking=False):
            logger.debug("coleta anterior ainda em andamento; ciclo ignorado")
            if self.telemetry is not None:
                self.telemetry.record_skip()
            return RESULT_SKIPPED
        try:
            return self._collect()
        finally:
            self._collect_lock.release()

    def _collect(self) -> str:
        started = time.monotonic()
        try:
            snapshot = self.collector.collect()
        except CollectionError as exc:
            logger.warning("Falha ao coletar dados do pm2: %s; saída: %s", exc, _truncate(exc.raw_output))
            result = RESULT_COLLECTION_ERROR
        except ParseError as exc:
            logger.warning("Falha ao interpretar saída do pm2: %s", exc)
            result = RESULT_PARSE_ERROR
        except Exception:
            logger.exception("Erro inesperado no ciclo de coleta do pm2")
            result = RESULT_UNEXPECTED_ERROR
        else:
            duration = time.monotonic() - started
            logger.debug("coleta do pm2 concluída em %.3fs (%d processos)", duration, snapshot.count)
            if self.telemetry is not None and snapshot.fetched_at is not None:
                self.telemetry.record_success(duration, snapshot.count, snapshot.fetched_at.timestamp())
            return RESULT_SUCCESS

        if self.telemetry is not None:
            self.telemetry.record_failure(result, time.monotonic() - started)
        return result

    # ========================
    # 2. Loop principal
    # ========================

    def _poll_loop(self) -> None:
        """Loop da thread: coleta imediata e depois uma por período."""
        origin = time.monotonic()
        tick = 0
        while not self._stop_event.is_set():
            self.run_once()
            tick = self._next_tick(origin, tick)
            deadline = origin + tick * self.interval
            if self._stop_event.wait(timeout=max(0.0, deadline - time.monotonic())):
                break

    def _next_tick(self, origin: float, tick: int) -> int:
        """Calcula o próximo tick, ignorando os que passaram durante a coleta."""
        elapsed_ticks = int((time.monotonic() - origin) // self.interval)
        missed = max(0, elapsed_ticks - tick)
        if missed:
            logger.debug("coleta excedeu o intervalo; %d ciclo(s) ignorado(s)", missed)
            if self.telemetry is not None:
                for _ in range(missed):
                    self.telemetry.record_skip()
        return max(tick + 1, elapsed_ticks + 1)
