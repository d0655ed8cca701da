"""Pacote core: orquestração principal do programa.

Contém o parsing de argumentos e o agendamento das coletas do pm2.
"""

from .poller import Poller

__all__ = ["Poller"]
