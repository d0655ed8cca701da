# conftest.py
# Configuração global para pytest: adiciona a raiz ao sys.path para permitir imports absolutos (src.*)
# e define fixtures partilhadas com saídas simuladas do `pm2 jlist`.
import json
import sys
from pathlib import Path

import pytest

ROOT_PATH = Path(__file__).parent
if str(ROOT_PATH) not in sys.path:
    sys.path.insert(0, str(ROOT_PATH))


def make_pm2_process(
    name="api",
    pid=1234,
    status="online",
    branch="main",
    revision="abc123",
    comment="deploy",
    memory=52428800,
    cpu=1.5,
    created_at=1700000000000,
    pm_uptime=1700000100000,
    restart_time=2,
):
    """Monta um elemento no formato do `pm2 jlist`."""
    return {
        "pid": pid,
        "name": name,
        "pm2_env": {
            "status": status,
            "restart_time": restart_time,
            "created_at": created_at,
            "pm_uptime": pm_uptime,
            "versioning": {
                "type": "git",
                "url": "https://example.com/repo.git",
                "branch": branch,
                "revision": revision,
                "comment": comment,
            },
        },
        "monit": {"memory": memory, "cpu": cpu},
    }


@pytest.fixture
def pm2_payload():
    """Saída JSON do `pm2 jlist` com dois processos (um online, um parado)."""
    procs = [
        make_pm2_process(),
        make_pm2_process(name="worker", pid=0, status="stopped", branch="", revision="", comment="", pm_uptime=0),
    ]
    return json.dumps(procs)


@pytest.fixture
def fake_runner():
    """Runner falso: devolve (returncode, saída em bytes) configuráveis e regista chamadas.

    ``output`` aceita texto (codificado em UTF-8) ou bytes crus.
    """

    class _FakeRunner:
        def __init__(self):
            self.returncode = 0
            self.output = "[]"
            self.exc = None
            self.calls = []

        def __call__(self, argv, timeout):
            self.calls.append((tuple(argv), timeout))
            if self.exc is not None:
                raise self.exc
            output = self.output.encode("utf-8") if isinstance(self.output, str) else self.output
            return self.returncode, output

    return _FakeRunner()


@pytest.fixture
def pm2_process():
    """Fábrica de elementos do `pm2 jlist` (ver make_pm2_process)."""
    return make_pm2_process
