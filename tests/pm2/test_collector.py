import subprocess
import sys
from datetime import datetime, timezone

import pytest

from src.pm2.collector import (
    PM2_COMMAND,
    CollectionError,
    ParseError,
    PM2Collector,
    parse_process_list,
    run_command,
)
from src.pm2.models import EMPTY_SNAPSHOT
from src.pm2.state import SnapshotStore

FIXED_NOW = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


def _collector(runner, store=None):
    return PM2Collector(store or SnapshotStore(), timeout=5, runner=runner, clock=lambda: FIXED_NOW)


def test_collect_publishes_snapshot_in_pm2_order(fake_runner, pm2_payload):
    """Coleta bem-sucedida publica os processos na ordem devolvida pelo pm2."""
    fake_runner.output = pm2_payload
    store = SnapshotStore()
    snap = _collector(fake_runner, store).collect()

    assert store.current() is snap
    assert [p.name for p in snap.processes] == ["api", "worker"]
    assert snap.fetched_at == FIXED_NOW
    assert fake_runner.calls == [(PM2_COMMAND, 5.0)]


def test_collect_empty_list_is_a_valid_snapshot(fake_runner):
    store = SnapshotStore()
    snap = _collector(fake_runner, store).collect()
    assert snap.count == 0
    assert snap.is_populated


def test_nonzero_exit_raises_and_keeps_snapshot(fake_runner, pm2_payload):
    """Código de saída != 0 levanta CollectionError e não altera o snapshot."""
    store = SnapshotStore()
    fake_runner.output = pm2_payload
    collector = _collector(fake_runner, store)
    before = collector.collect()

    fake_runner.returncode = 1
    fake_runner.output = "[PM2] daemon not running"
    with pytest.raises(CollectionError) as info:
        collector.collect()

    assert info.value.raw_output == "[PM2] daemon not running"
    assert isinstance(info.value.cause, subprocess.CalledProcessError)
    assert store.current() == before
    assert len(fake_runner.calls) == 2


def test_missing_binary_raises_collection_error(fake_runner):
    fake_runner.exc = FileNotFoundError(2, "No such file or directory", "pm2")
    store = SnapshotStore()
    with pytest.raises(CollectionError):
        _collector(fake_runner, store).collect()
    assert store.current() is EMPTY_SNAPSHOT


def test_timeout_raises_collection_error_with_partial_output(fake_runner):
    fake_runner.exc = subprocess.TimeoutExpired(["pm2", "jlist"], 5, output=b"partial")
    with pytest.raises(CollectionError) as info:
        _collector(fake_runner).collect()
    assert info.value.raw_output == "partial"
    assert "timeout" in str(info.value)


def test_malformed_json_raises_parse_error_and_keeps_snapshot(fake_runner):
    store = SnapshotStore()
    fake_runner.output = "[{not json"
    with pytest.raises(ParseError) as info:
        _collector(fake_runner, store).collect()
    assert isinstance(info.value.cause, ValueError)
    assert store.current() is EMPTY_SNAPSHOT


@pytest.mark.parametrize("output", ['{"pid": 1}', '"text"', "", '[1, 2]', '[{"pid": "x"}]'])
def test_parse_process_list_rejects_wrong_shapes(output):
    with pytest.raises(ParseError):
        parse_process_list(output)


def test_parse_process_list_preserves_duplicates(pm2_process):
    """Nomes repetidos não são deduplicados nem reordenados."""
    import json

    payload = json.dumps([pm2_process(name="b", pid=2), pm2_process(name="a", pid=1), pm2_process(name="b", pid=3)])
    records = parse_process_list(payload)
    assert [(r.name, r.pid) for r in records] == [("b", 2), ("a", 1), ("b", 3)]


def test_run_command_captures_combined_output():
    """run_command junta stdout e stderr e devolve o código de saída."""
    code, out = run_command(
        [sys.executable, "-c", "import sys; print('out'); print('err', file=sys.stderr); sys.exit(3)"],
        timeout=30,
    )
    assert code == 3
    assert b"out" in out and b"err" in out


def test_real_timeout_keeps_partial_output():
    """O timeout do subprocess real preserva a saída já escrita pelo comando."""
    script = "import sys, time; print('partial', flush=True); time.sleep(30)"
    collector = PM2Collector(SnapshotStore(), timeout=1, command=[sys.executable, "-c", script])
    with pytest.raises(CollectionError) as info:
        collector.fetch()
    assert isinstance(info.value.cause, subprocess.TimeoutExpired)
    assert info.value.raw_output.strip() == "partial"


def test_non_utf8_output_raises_parse_error():
    """Saída real com bytes inválidos em UTF-8 é um ParseError."""
    script = r"""import sys; sys.stdout.buffer.write(b'[{"name": "\xff\xfe"}]')"""
    store = SnapshotStore()
    collector = PM2Collector(store, timeout=30, command=[sys.executable, "-c", script])
    with pytest.raises(ParseError) as info:
        collector.collect()
    assert isinstance(info.value.cause, UnicodeDecodeError)
    assert store.current() is EMPTY_SNAPSHOT


def test_nonzero_exit_with_invalid_bytes_keeps_readable_output(fake_runner):
    fake_runner.returncode = 1
    fake_runner.output = b"erro \xff no daemon"
    with pytest.raises(CollectionError) as info:
        _collector(fake_runner).fetch()
    assert info.value.raw_output == "erro \ufffd no daemon"
