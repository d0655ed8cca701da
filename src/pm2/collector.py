"""Coletor do pm2: executa ``pm2 jlist`` e publica o snapshot resultante.

Fluxo de um ciclo:

1. executa o comando externo (uma única invocação, sem retries);
2. interpreta a saída como um array JSON de processos;
3. publica ``Snapshot(processos, agora)`` no ``SnapshotStore``.

Falhas nos passos 1 e 2 levantam ``CollectionError`` / ``ParseError`` sem
tocar no snapshot vivo; quem agenda os ciclos decide como registá-las.
"""

import json
import logging
import subprocess
from datetime import datetime, timezone
from typing import Callable, Sequence

from .models import ProcessRecord, Snapshot
from .state import SnapshotStore

logger = logging.getLogger(__name__)

PM2_COMMAND: tuple[str, ...] = ("pm2", "jlist")
DEFAULT_TIMEOUT_SEC = 30.0

# (argv, timeout) -> (returncode, bytes da saída combinada stdout+stderr)
Runner = Callable[[Sequence[str], float], tuple[int, bytes]]


# ========================
# 1. Erros do coletor
# ========================


class CollectorError(Exception):
    """Base dos erros de um ciclo de coleta."""

    def __init__(self, message: str, cause: BaseException | None = None) -> None:
        super().__init__(message)
        self.cause = cause


class CollectionError(CollectorError):
    """O comando externo falhou, não existe ou excedeu o timeout."""

    def __init__(self, message: str, cause: BaseException | None = None, raw_output: str = "") -> None:
        super().__init__(message, cause)
        self.raw_output = raw_output


class ParseError(CollectorError):
    """A saída do comando não é um array JSON de processos válido."""


# ========================
# 2. Execução e parsing
# ========================


def run_command(argv: Sequence[str], timeout: float) -> tuple[int, bytes]:
    """Executa ``argv`` sem shell e retorna (returncode, saída combinada em bytes).

    A saída não é decodificada aqui: o pm2 escreve UTF-8 independentemente do
    locale do exporter.
    """
    proc = subprocess.run(
        list(argv),
        stdout=subprocess.PIPE,
        stderr=subprocess.STDOUT,
        timeout=timeout,
        check=False,
    )
    return proc.returncode, proc.stdout or b""


def _decode_lenient(data: bytes | str | None) -> str:
    """Texto da saída para logs e mensagens de erro; bytes inválidos viram U+FFFD."""
    if data is None:
        return ""
    if isinstance(data, bytes):
        return data.decode("utf-8", "replace")
    return data


def parse_process_list(output: bytes | str) -> list[ProcessRecord]:
    """Interpreta a saída do ``pm2 jlist`` como lista de ``ProcessRecord``.

    A ordem dos elementos é preservada. Levanta ``ParseError`` quando a saída
    não é UTF-8, quando o JSON é inválido, quando o documento não é um array ou
    quando algum elemento tem campos com tipo errado.
    """
    if isinstance(output, bytes):
        try:
            output = output.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise ParseError(f"saída do pm2 jlist não é UTF-8 válido: {exc}", cause=exc) from exc
    try:
        doc = json.loads(output)
    except ValueError as exc:
        raise ParseError(f"falha ao interpretar JSON do pm2 jlist: {exc}", cause=exc) from exc
    if not isinstance(doc, list):
        raise ParseError(f"pm2 jlist deve retornar um array JSON, recebido {type(doc).__name__}")

    records: list[ProcessRecord] = []
    for idx, item in enumerate(doc):
        try:
            records.append(ProcessRecord.from_pm2(item))
        except ValueError as exc:
            raise ParseError(f"elemento {idx} inválido no pm2 jlist: {exc}", cause=exc) from exc
    return records


class PM2Collector:
    """Executa o comando do pm2 e publica o resultado no ``SnapshotStore``.

    ``runner`` e ``clock`` podem ser substituídos em testes para evitar chamar
    o pm2 real e para fixar o instante da coleta.
    """

    def __init__(
        self,
        store: SnapshotStore,
        *,
        timeout: float = DEFAULT_TIMEOUT_SEC,
        command: Sequence[str] = PM2_COMMAND,
        runner: Runner | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.store = store
        self.timeout = float(timeout)
        self.command = tuple(command)
        self._runner = runner or run_command
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def fetch(self) -> list[ProcessRecord]:
        """Executa o comando uma vez e retorna os processos interpretados."""
        argv = self.command
        try:
            returncode, output = self._runner(argv, self.timeout)
        except subprocess.TimeoutExpired as exc:
            # em POSIX exc.output traz os bytes lidos até ao timeout
            partial = _decode_lenient(exc.output)
            raise CollectionError(
                f"`{' '.join(argv)}` excedeu o timeout de {self.timeout:g}s", cause=exc, raw_output=partial
            ) from exc
        except (OSError, subprocess.SubprocessError) as exc:
            raise CollectionError(f"falha ao executar `{' '.join(argv)}`: {exc}", cause=exc) from exc

        if returncode != 0:
            text = _decode_lenient(output)
            raise CollectionError(
                f"`{' '.join(argv)}` terminou com código {returncode}",
                cause=subprocess.CalledProcessError(returncode, list(argv), text),
                raw_output=text,
            )
        return parse_process_list(output)

    def collect(self) -> Snapshot:
        """Executa um ciclo completo e publica o novo snapshot.

        Em caso de erro o snapshot vivo não é alterado e a exceção propaga.
        """
        records = self.fetch()
        snapshot = Snapshot(processes=tuple(records), fetched_at=self._clock())
        self.store.publish(snapshot)
        logger.debug("snapshot publicado com %d processos", len(records))
        return snapshot
