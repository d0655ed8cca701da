from prometheus_client import CollectorRegistry
from prometheus_client.parser import text_string_to_metric_families

from src.exporter.telemetry import RESULT_COLLECTION_ERROR, RESULT_SUCCESS, ExporterTelemetry


def _value(tel: ExporterTelemetry, name: str, labels: dict | None = None) -> float | None:
    return tel.registry.get_sample_value(name, labels or {})


def test_registry_is_isolated_from_default():
    """Cada instância usa o seu próprio registry (sem colisão de nomes)."""
    a = ExporterTelemetry()
    b = ExporterTelemetry()
    assert a.registry is not b.registry
    assert isinstance(a.registry, CollectorRegistry)


def test_counters_start_at_zero_for_every_result():
    tel = ExporterTelemetry()
    assert _value(tel, "pm2_exporter_collections_total", {"result": RESULT_SUCCESS}) == 0.0
    assert _value(tel, "pm2_exporter_collections_total", {"result": RESULT_COLLECTION_ERROR}) == 0.0


def test_record_success_and_failure():
    tel = ExporterTelemetry()
    tel.record_success(0.2, 4, 1700000000.0)
    tel.record_failure(RESULT_COLLECTION_ERROR, 0.1)
    tel.record_skip()

    assert _value(tel, "pm2_exporter_collections_total", {"result": RESULT_SUCCESS}) == 1.0
    assert _value(tel, "pm2_exporter_collections_total", {"result": RESULT_COLLECTION_ERROR}) == 1.0
    assert _value(tel, "pm2_exporter_collections_skipped_total") == 1.0
    assert _value(tel, "pm2_exporter_processes") == 4.0
    assert _value(tel, "pm2_exporter_last_success_timestamp_seconds") == 1700000000.0
    assert _value(tel, "pm2_exporter_collection_duration_seconds_count") == 2.0


def test_render_is_valid_exposition():
    tel = ExporterTelemetry()
    tel.record_success(0.01, 1, 1.0)
    names = {f.name for f in text_string_to_metric_families(tel.render().decode("utf-8"))}
    assert "pm2_exporter_collections" in names
    assert "pm2_exporter_collection_duration_seconds" in names
