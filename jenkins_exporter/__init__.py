"""
Prometheus exporter for Jenkins executor (node) status.

Polls one or more Jenkins servers' ``/computer/api/json`` endpoint and
exposes node online/offline gauges in Prometheus format.
"""

__version__ = "0.1.0"
