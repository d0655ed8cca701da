"""Métricas internas do exporter (ciclos de coleta, falhas, duração).

Ficam num ``CollectorRegistry`` próprio do ``prometheus_client`` e são expostas
numa rota separada, para que ``/metrics`` contenha apenas as famílias do pm2.
"""

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, generate_latest

RESULT_SUCCESS = "success"
RESULT_COLLECTION_ERROR = "collection_error"
RESULT_PARSE_ERROR = "parse_error"
RESULT_UNEXPECTED_ERROR = "unexpected_error"


class ExporterTelemetry:
    """Agrupa os instrumentos internos num registry isolado."""

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        self.registry = registry if registry is not None else CollectorRegistry(auto_describe=True)
        self.collections = Counter(
            "pm2_exporter_collections",
            "Ciclos de coleta do pm2 jlist por resultado",
            ["result"],
            registry=self.registry,
        )
        self.skipped = Counter(
            "pm2_exporter_collections_skipped",
            "Ciclos ignorados porque a coleta anterior ainda estava em andamento",
            registry=self.registry,
        )
        self.duration = Histogram(
            "pm2_exporter_collection_duration_seconds",
            "Duração de cada execução do pm2 jlist",
            buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0),
            registry=self.registry,
        )
        self.last_success = Gauge(
            "pm2_exporter_last_success_timestamp_seconds",
            "Epoch (segundos) da última coleta com sucesso",
            registry=self.registry,
        )
        self.processes = Gauge(
            "pm2_exporter_processes",
            "Número de processos no último snapshot publicado",
            registry=self.registry,
        )
        # inicializa as séries para aparecerem com 0 antes do primeiro erro
        for result in (RESULT_SUCCESS, RESULT_COLLECTION_ERROR, RESULT_PARSE_ERROR, RESULT_UNEXPECTED_ERROR):
            self.collections.labels(result=result)

    def record_success(self, duration: float, process_count: int, fetched_at: float) -> None:
        self.collections.labels(result=RESULT_SUCCESS).inc()
        self.duration.observe(duration)
        self.processes.set(process_count)
        self.last_success.set(fetched_at)

    def record_failure(self, result: str, duration: float) -> None:
        self.collections.labels(result=result).inc()
        self.duration.observe(duration)

    def record_skip(self) -> None:
        self.skipped.inc()

    def render(self) -> bytes:
        """Gera o texto de exposição do registry interno."""
        return generate_latest(self.registry)
