"""Estado partilhado: o snapshot vivo do pm2.

O coletor é o único escritor; os handlers HTTP apenas leem. A publicação troca
a referência do snapshot numa única atribuição, por isso um leitor vê sempre o
snapshot anterior completo ou o novo completo, nunca uma mistura.
"""

from threading import Lock

from .models import EMPTY_SNAPSHOT, Snapshot


class SnapshotStore:
    """Guarda o ``Snapshot`` atual atrás de uma interface current/publish."""

    def __init__(self, initial: Snapshot = EMPTY_SNAPSHOT) -> None:
        self._snapshot = initial
        # serializa escritores; leitores não passam pelo lock
        self._write_lock = Lock()

    def current(self) -> Snapshot:
        """Retorna o snapshot vivo sem esperar por coletas em andamento."""
        return self._snapshot

    def publish(self, snapshot: Snapshot) -> Snapshot:
        """Substitui o snapshot vivo e retorna o anterior."""
        if not isinstance(snapshot, Snapshot):
            raise TypeError("publish espera um Snapshot")
        with self._write_lock:
            previous = self._snapshot
            self._snapshot = snapshot
        return previous
