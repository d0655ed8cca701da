"""Pacote exporter: exposição das métricas do pm2 no formato do Prometheus.

Contém a renderização do texto de exposição, o servidor HTTP e as métricas
internas do próprio exporter.
"""

from .exposition import render_metrics, sanitize_label_value
from .main_http import create_server, run_http_server

__all__ = ["render_metrics", "sanitize_label_value", "create_server", "run_http_server"]
