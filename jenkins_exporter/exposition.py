"""
Prometheus text exposition (format version 0.0.4).
"""
from collections.abc import Sequence

from jenkins_exporter import __version__
from jenkins_exporter.publisher import (
    ONLINE_STATUS,
    TEMPORARILY_OFFLINE_STATUS,
    MetricPublisher,
)

CONTENT_TYPE = "text/plain; version=0.0.4; charset=utf-8"

NODE_METRICS: list[tuple[str, str]] = [
    (ONLINE_STATUS, "Whether a Jenkins node is online (1) or offline (0)."),
    (TEMPORARILY_OFFLINE_STATUS, "Whether a Jenkins node is temporarily offline."),
]


def escape_label_value(value: str) -> str:
    return str(value).replace("\\", "\\\\").replace("\n", "\\n").replace('"', '\\"')


def format_labels(labels: Sequence[tuple[str, str]]) -> str:
    """Format label pairs as ``{k="v",...}``, keeping the given order."""
    return "{" + ",".join(f'{k}="{escape_label_value(v)}"' for k, v in labels) + "}"


def format_value(value: float) -> str:
    if value != value:
        return "NaN"
    if float(value).is_integer():
        return str(int(value))
    return repr(float(value))


def _header(lines: list[str], name: str, help_text: str, metric_type: str = "gauge") -> None:
    lines.append(f"# HELP {name} {help_text}")
    lines.append(f"# TYPE {name} {metric_type}")


def render_metrics(publisher: MetricPublisher, targets: Sequence[str]) -> str:
    """
    Render the publisher's current state.

    Node samples come from ``publisher.snapshot()``; the per-target scrape
    series are emitted for every configured target, including targets that
    have not been polled yet.
    """
    samples = publisher.snapshot()
    stats = publisher.target_stats()

    lines: list[str] = []

    _header(lines, "jenkins_exporter_info", "Exporter version information.")
    lines.append(f"jenkins_exporter_info{format_labels([('version', __version__)])} 1")

    for name, help_text in NODE_METRICS:
        _header(lines, name, help_text)
        for sample in samples:
            if sample["name"] != name:
                continue
            labels = format_labels([("node", sample["node"]), ("url", sample["url"])])
            lines.append(f"{name}{labels} {format_value(sample['value'])}")

    _header(lines, "jenkins_up", "Was the last fetch of the Jenkins executor status successful.")
    for target in targets:
        up = stats[target]["up"] if target in stats else 0.0
        lines.append(f"jenkins_up{format_labels([('url', target)])} {format_value(up)}")

    _header(lines, "jenkins_scrape_duration_seconds", "Duration of the last fetch in seconds.")
    for target in targets:
        duration = stats[target]["duration"] if target in stats else 0.0
        lines.append(f"jenkins_scrape_duration_seconds{format_labels([('url', target)])} {format_value(duration)}")

    _header(lines, "jenkins_last_scrape_timestamp_seconds", "Unix time of the last successful fetch.")
    for target in targets:
        updated = stats[target]["last_success"] if target in stats else 0.0
        lines.append(f"jenkins_last_scrape_timestamp_seconds{format_labels([('url', target)])} {format_value(updated)}")

    _header(lines, "jenkins_scrape_errors_total", "Total number of failed fetches by error type.", "counter")
    for target in targets:
        if target not in stats:
            continue
        for error_type, count in sorted(stats[target]["errors"].items()):
            labels = format_labels([("url", target), ("type", error_type)])
            lines.append(f"jenkins_scrape_errors_total{labels} {format_value(count)}")

    return "\n".join(lines) + "\n"
