#!/usr/bin/env python3
"""
Prometheus exporter for Jenkins executor status.

This module wires the poller to an HTTP endpoint that serves the current
node gauges in Prometheus format, or prints them once in one-shot mode.
"""
import json
import logging
import signal
import sys
import threading
import time
from functools import partial
from http.server import BaseHTTPRequestHandler, HTTPServer

from jenkins_exporter import __version__
from jenkins_exporter.config import ExporterConfig, load_config
from jenkins_exporter.exposition import CONTENT_TYPE, render_metrics
from jenkins_exporter.fetcher import fetch
from jenkins_exporter.poller import Poller, run_cycle
from jenkins_exporter.publisher import MetricPublisher

# Health check multiplier: poller is unhealthy if heartbeat is older than this
HEALTH_CHECK_MULTIPLIER = 3.0
# Minimum health check threshold (seconds)
MIN_HEALTH_CHECK_THRESHOLD = 30.0

logger = logging.getLogger(__name__)

# Graceful shutdown flag
shutdown_requested = threading.Event()


def setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


# ======================
# HTTP Handler
# ======================

class ExporterServer(HTTPServer):
    """HTTPServer carrying the state the request handler reads."""

    def __init__(self, address, config: ExporterConfig, publisher: MetricPublisher, poller: Poller):
        self.config = config
        self.publisher = publisher
        self.poller = poller
        super().__init__(address, JenkinsHandler)


class JenkinsHandler(BaseHTTPRequestHandler):
    server: ExporterServer

    def do_GET(self):
        path = self.path.split("?", 1)[0]
        if path == "/metrics":
            self.handle_metrics()
        elif path == "/health" or path == "/":
            self.handle_health()
        elif path == "/version":
            self.handle_version()
        else:
            self._send(404, "text/plain", b"Not Found\n")

    def log_message(self, fmt, *args):
        return

    def _send(self, status: int, content_type: str, body: bytes) -> None:
        self.send_response(status)
        self.send_header("Content-Type", content_type)
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def handle_health(self):
        """
        Exporter health means:
          - HTTP server is up
          - poller thread is still ticking
        NOT "all Jenkins targets are up"
        """
        config = self.server.config
        now = time.time()
        hb = self.server.poller.heartbeat
        threshold = max(
            MIN_HEALTH_CHECK_THRESHOLD,
            config["poll_delay"] * HEALTH_CHECK_MULTIPLIER + config["timeout"],
        )
        unhealthy = (hb == 0.0) or ((now - hb) > threshold)
        if unhealthy:
            body = f"UNHEALTHY: poller heartbeat stale (last={hb}, now={now})\n"
            self._send(503, "text/plain", body.encode("utf-8"))
        else:
            self._send(200, "text/plain", f"OK\nversion={__version__}\n".encode("utf-8"))

    def handle_version(self):
        response = {
            "version": __version__,
            "exporter": "jenkins-exporter",
        }
        self._send(200, "application/json", json.dumps(response, indent=2).encode("utf-8"))

    def handle_metrics(self):
        body = render_metrics(self.server.publisher, self.server.config["urls"])
        self._send(200, CONTENT_TYPE, body.encode("utf-8"))


# ======================
# Signal Handlers
# ======================

def signal_handler(signum, frame):
    """Handle shutdown signals gracefully."""
    logger.info(f"Received signal {signum}, initiating graceful shutdown...")
    shutdown_requested.set()


# ======================
# Modes
# ======================

def run_one_shot(config: ExporterConfig, publisher: MetricPublisher, fetch_func) -> str:
    """Poll every target exactly once and return the rendered metrics."""
    run_cycle(config["urls"], publisher, fetch_func)
    return render_metrics(publisher, config["urls"])


def serve(config: ExporterConfig, publisher: MetricPublisher, fetch_func) -> None:
    """Run the poller in the background and serve /metrics until a signal arrives."""
    poller = Poller(config["urls"], publisher, fetch_func, config["poll_delay"])

    try:
        server = ExporterServer(("0.0.0.0", config["port"]), config, publisher, poller)
    except OSError as e:
        logger.critical(f"Cannot listen on 0.0.0.0:{config['port']}: {e}")
        raise SystemExit(1) from e

    signal.signal(signal.SIGTERM, signal_handler)
    signal.signal(signal.SIGINT, signal_handler)

    poller.start()

    logger.info(
        f"Jenkins exporter v{__version__} listening on 0.0.0.0:{config['port']}, "
        f"polling {len(config['urls'])} target(s) every {config['poll_delay']}s "
        f"(timeout={config['timeout']}s; evict_stale={config['evict_stale']})"
    )
    for url in config["urls"]:
        logger.info(f"  - {url}")

    server_thread = threading.Thread(target=server.serve_forever, name="http-server", daemon=True)
    server_thread.start()

    try:
        while not shutdown_requested.is_set():
            shutdown_requested.wait(0.5)
    except KeyboardInterrupt:
        logger.info("Keyboard interrupt received")
        shutdown_requested.set()
    finally:
        logger.info("Shutting down HTTP server...")
        server.shutdown()
        server.server_close()

        logger.info("Waiting for poller thread to finish...")
        poller.stop()
        if poller.join(timeout=config["timeout"] * 2):
            logger.info("Poller thread finished cleanly")
        else:
            logger.warning("Poller thread did not finish in time")

        logger.info("Exporter shutdown complete")


# ======================
# Main
# ======================

def main(argv=None):
    """Main entry point for the exporter."""
    config = load_config(argv)
    setup_logging(config["log_level"])

    publisher = MetricPublisher(evict_stale=config["evict_stale"])
    fetch_func = partial(fetch, timeout=config["timeout"])

    if config["one_shot"]:
        sys.stdout.write(run_one_shot(config, publisher, fetch_func))
        sys.stdout.flush()
        return

    serve(config, publisher, fetch_func)


if __name__ == "__main__":
    main()
