"""JSON and HTML export of benchmark results."""

from __future__ import annotations

import html
import json
import os
import platform
import re
from dataclasses import asdict, dataclass
from datetime import UTC, datetime
from pathlib import Path
from string import Template
from typing import TYPE_CHECKING, Any

from eventbench._internal.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Sequence

    from eventbench.metrics.models import PhaseResult

logger = get_logger("report.export")


@dataclass(frozen=True)
class HardwareInfo:
    """Host description recorded alongside benchmark numbers."""

    os: str
    arch: str
    logical_cpus: int
    physical_cpus: int
    cpu_name: str
    ram_total_gb: float


def count_physical_cores(cpuinfo: str) -> int:
    """Count distinct ``(physical id, core id)`` pairs in ``/proc/cpuinfo`` text.

    Returns:
        The number of physical cores, or 0 when the text carries no core ids.
    """
    cores: set[tuple[str, str]] = set()
    for block in cpuinfo.split("\n\n"):
        fields = dict(
            (key.strip(), value.strip())
            for key, _, value in (line.partition(":") for line in block.splitlines())
        )
        if "core id" in fields:
            cores.add((fields.get("physical id", "0"), fields["core id"]))
    return len(cores)


def detect_hardware() -> HardwareInfo:
    """Describe the host running the benchmark.

    CPU model, physical cores and memory are read from ``/proc`` on Linux;
    elsewhere the values ``platform`` reports are used, physical cores fall
    back to the logical count and memory is left at zero.
    """
    cpu_name = platform.processor() or "Unknown CPU"
    logical = os.cpu_count() or 1
    physical = 0
    ram_gb = 0.0

    cpuinfo = Path("/proc/cpuinfo")
    if cpuinfo.exists():
        text = cpuinfo.read_text()
        for line in text.splitlines():
            if line.startswith("model name"):
                cpu_name = line.split(":", 1)[1].strip()
                break
        physical = count_physical_cores(text)

    meminfo = Path("/proc/meminfo")
    if meminfo.exists():
        match = re.search(r"MemTotal:\s+(\d+)\s+kB", meminfo.read_text())
        if match:
            ram_gb = int(match.group(1)) / (1024 * 1024)

    return HardwareInfo(
        os=platform.system().lower(),
        arch=platform.machine(),
        logical_cpus=logical,
        physical_cpus=physical or logical,
        cpu_name=cpu_name,
        ram_total_gb=ram_gb,
    )


def report_filename(hardware: HardwareInfo, now: datetime, suffix: str) -> str:
    """Return ``benchmark_report_<timestamp>_<cpu>.<suffix>``.

    The CPU name is lowercased and reduced to ``[a-z0-9_]`` with single
    underscores so the file name is portable.
    """
    cpu = hardware.cpu_name.lower().replace("(r)", "").replace("(tm)", "")
    cpu = re.sub(r"[^a-z0-9_]", "", cpu.replace(" ", "_"))
    cpu = re.sub(r"_+", "_", cpu).strip("_")
    return f"benchmark_report_{now:%Y%m%d_%H%M%S}_{cpu}.{suffix}"


def build_payload(
    results: Sequence[PhaseResult],
    *,
    workers: int,
    duration_seconds: float,
    hardware: HardwareInfo,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Return the JSON document describing a benchmark run."""
    now = now or datetime.now(tz=UTC)
    return {
        "timestamp": now.isoformat(),
        "workers": workers,
        "duration_seconds": duration_seconds,
        "hardware": asdict(hardware),
        "results": [r.to_dict() for r in results],
    }


def write_json_report(path: Path, payload: dict[str, Any]) -> Path:
    """Write ``payload`` as indented JSON and return the path."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, indent=2))
    logger.info("JSON report saved to: %s", path)
    return path


_HTML_TEMPLATE = Template("""\
<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<title>Benchmark Report $timestamp</title>
<style>
body { font-family: sans-serif; margin: 2em; }
table { border-collapse: collapse; margin-bottom: 2em; }
th, td { border: 1px solid #ccc; padding: 4px 10px; text-align: right; }
th:first-child, td:first-child { text-align: left; }
</style>
</head>
<body>
<h1>Benchmark Report</h1>
<p>$timestamp &middot; $workers workers &middot; ${duration}s per phase</p>
<p>$cpu_name ($physical_cpus physical / $logical_cpus logical cores) &middot; \
${ram_gb} GB RAM &middot; $os/$arch</p>
$throughput_chart
$latency_chart
<table>
<tr><th>Phase</th><th>OK</th><th>RPS</th><th>Err</th><th>P50</th><th>P90</th>\
<th>P95</th><th>P99</th><th>Max</th><th>Lag</th></tr>
$rows
</table>
<script id="results" type="application/json">$results_json</script>
</body>
</html>
""")


_BAR_HEIGHT = 22
_LABEL_WIDTH = 180
_PLOT_WIDTH = 420


def bar_chart(title: str, bars: Sequence[tuple[str, float]], unit: str) -> str:
    """Render a horizontal bar chart as inline SVG.

    Bars are scaled against the largest value; an all-zero chart draws
    empty bars rather than dividing by zero.

    Args:
        title: Caption shown above the chart.
        bars: ``(label, value)`` pairs in display order.
        unit: Suffix appended to each value label.

    Returns:
        A ``<figure>`` element containing the chart.
    """
    peak = max((value for _, value in bars), default=0.0)
    height = _BAR_HEIGHT * len(bars) + 10
    width = _LABEL_WIDTH + _PLOT_WIDTH + 120
    parts = [
        f'<figure><figcaption>{html.escape(title)}</figcaption>',
        f'<svg xmlns="http://www.w3.org/2000/svg" width="{width}" height="{height}">',
    ]
    for i, (label, value) in enumerate(bars):
        y = i * _BAR_HEIGHT + 5
        length = _PLOT_WIDTH * value / peak if peak > 0 else 0.0
        parts.append(
            f'<text x="0" y="{y + 15}">{html.escape(label)}</text>'
            f'<rect x="{_LABEL_WIDTH}" y="{y}" width="{length:.1f}" '
            f'height="{_BAR_HEIGHT - 6}" fill="#4a7ebb"/>'
            f'<text x="{_LABEL_WIDTH + length + 6:.1f}" y="{y + 15}">{value:.2f}{unit}</text>'
        )
    parts.append("</svg></figure>")
    return "\n".join(parts)


def _html_row(result: PhaseResult) -> str:
    agg = result.aggregate
    lat = agg.latency
    lag = f"{result.settling_ms:.2f}ms" if result.settling_ms is not None else "-"
    cells = [
        html.escape(result.name),
        str(agg.total_ok),
        f"{agg.total_rps:.0f}",
        str(agg.total_err),
        *(f"{v:.2f}ms" for v in (lat.p50, lat.p90, lat.p95, lat.p99, lat.max)),
        lag,
    ]
    return "<tr>" + "".join(f"<td>{c}</td>" for c in cells) + "</tr>"


def write_html_report(path: Path, results: Sequence[PhaseResult], payload: dict[str, Any]) -> Path:
    """Render a standalone HTML report with the JSON payload embedded."""
    hardware = payload["hardware"]
    # "</" inside a <script> block would end it early
    results_json = json.dumps(payload["results"]).replace("</", "<\\/")
    content = _HTML_TEMPLATE.substitute(
        timestamp=html.escape(payload["timestamp"]),
        workers=payload["workers"],
        duration=payload["duration_seconds"],
        cpu_name=html.escape(hardware["cpu_name"]),
        logical_cpus=hardware["logical_cpus"],
        physical_cpus=hardware["physical_cpus"],
        throughput_chart=bar_chart(
            "Throughput (requests/s)", [(r.name, r.aggregate.total_rps) for r in results], ""
        ),
        latency_chart=bar_chart(
            "P99 latency", [(r.name, r.aggregate.latency.p99) for r in results], "ms"
        ),
        ram_gb=f"{hardware['ram_total_gb']:.1f}",
        os=html.escape(hardware["os"]),
        arch=html.escape(hardware["arch"]),
        rows="\n".join(_html_row(r) for r in results),
        results_json=results_json,
    )
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    logger.info("HTML report saved to: %s", path)
    return path


def export_reports(
    output_dir: Path,
    results: Sequence[PhaseResult],
    *,
    workers: int,
    duration_seconds: float,
    formats: Sequence[str] = ("html", "json"),
) -> list[Path]:
    """Write the requested report formats into ``output_dir``.

    Returns:
        Paths of the files written.
    """
    hardware = detect_hardware()
    now = datetime.now(tz=UTC)
    payload = build_payload(
        results,
        workers=workers,
        duration_seconds=duration_seconds,
        hardware=hardware,
        now=now,
    )

    written: list[Path] = []
    if "json" in formats:
        written.append(write_json_report(output_dir / report_filename(hardware, now, "json"), payload))
    if "html" in formats:
        written.append(
            write_html_report(output_dir / report_filename(hardware, now, "html"), results, payload)
        )
    return written
