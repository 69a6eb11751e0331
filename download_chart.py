#!/usr/bin/env python3
"""
Renders per-repository download trend charts as static SVGs using Jinja2 templates.

For every "owner/repo" listed in the config file the script reads the stored
download series (data/<owner>_<repo>.json, a JSON list of {"date", "total"}
records) and writes an 800x400 line chart to docs/<owner>_<repo>.svg.

Behavior notes:
 - A repository without a data file gets a placeholder "No data yet" chart.
 - Points are spaced evenly by sample index, not by elapsed time between dates.
 - Date labels show month and day only; multi-year series repeat labels.
 - Paths default to config.json / data / docs and can be overridden with CLI
   flags or the DOWNLOAD_CHART_CONFIG / DOWNLOAD_CHART_DATA_DIR /
   DOWNLOAD_CHART_DOCS_DIR environment variables.
 - Owner and repo names are XML-escaped in the chart text, so names containing
   &, <, > or quotes render as entities rather than being inserted verbatim.
"""
import os
import sys
import json
import math
import argparse
import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, List, Dict, Any, Tuple, NamedTuple, Sequence, Mapping, Union
from jinja2 import Template

# ---------------------------
# Geometry & palette
# ---------------------------
class ChartGeometry(NamedTuple):
    """Fixed canvas size and padding; the plot area is the canvas minus padding."""
    width: int = 800
    height: int = 400
    pad_top: int = 55
    pad_right: int = 40
    pad_bottom: int = 60
    pad_left: int = 60

    @property
    def plot_width(self) -> int:
        return self.width - self.pad_left - self.pad_right

    @property
    def plot_height(self) -> int:
        return self.height - self.pad_top - self.pad_bottom

    @property
    def baseline(self) -> int:
        return self.pad_top + self.plot_height


GEOMETRY = ChartGeometry()

COLORS = {
    "background": "#0d1117",
    "accent": "#3b82f6",
    "link": "#58a6ff",
    "positive": "#3fb950",
    "negative": "#f85149",
    "muted": "#8b949e",
    "text": "#c9d1d9",
    "border": "#30363d",
}

# Month labels are fixed so output never depends on the process locale
MONTH_ABBR = ("Jan", "Feb", "Mar", "Apr", "May", "Jun",
              "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")

Y_TICK_INTERVALS = 4
MAX_X_LABELS = 8


class Point(NamedTuple):
    x: float
    y: float
    value: int
    date: str


class Tick(NamedTuple):
    position: float
    label: str


class Summary(NamedTuple):
    current_total: int
    previous_total: int
    change: int
    change_percent: str
    sign: str

# ---------------------------
# Formatting helpers
# ---------------------------
def to_fixed(value: float, digits: int) -> str:
    """
    Format `value` with exactly `digits` decimals, rounding ties away from zero.

    The exact binary value of the float is rounded (not its shortest repr), so
    1.25 becomes "1.3" and 1.005 stays "1.0", matching how the charts have
    always been labelled.
    """
    quantum = Decimal(1).scaleb(-digits)
    return str(Decimal(value).quantize(quantum, rounding=ROUND_HALF_UP))

def round_half_up(value: float) -> int:
    return math.floor(value + 0.5)

def format_coord(value: float) -> str:
    """Shortest round-trip form of a coordinate; integral values drop the '.0'."""
    if isinstance(value, float):
        return str(int(value)) if value.is_integer() else repr(value)
    return str(value)

def format_number(num: int) -> str:
    """
    Abbreviate a count for display: 2300000 -> "2.3M", 1500 -> "1.5K", 999 -> "999".

    Thresholds apply to the raw number, so negative values always fall through
    to the plain integer form.
    """
    if num >= 1_000_000:
        return to_fixed(num / 1_000_000, 1) + "M"
    if num >= 1_000:
        return to_fixed(num / 1_000, 1) + "K"
    return str(num)

def format_date(value: Union[str, datetime.date]) -> str:
    """
    Render an ISO date (or datetime) as abbreviated month and day, e.g. "Mar 7".

    Strings go through datetime.fromisoformat; malformed input raises its ValueError.
    """
    if isinstance(value, datetime.date):
        d = value
    else:
        d = datetime.datetime.fromisoformat(value)
    return f"{MONTH_ABBR[d.month - 1]} {d.day}"

# ---------------------------
# Layout
# ---------------------------
def value_bounds(totals: Sequence[int]) -> Tuple[int, int, int]:
    """Return (min_value, max_value, value_range); the range is floored to 1."""
    max_value = max(max(totals), 1)
    min_value = min(totals)
    value_range = (max_value - min_value) or 1
    return min_value, max_value, value_range

def compute_points(series: Sequence[Mapping[str, Any]], geometry: ChartGeometry = GEOMETRY) -> List[Point]:
    """
    Project each sample into the plot area.

    x is uniform by index (a single sample sits on the left edge); y grows
    upward from the plot baseline at min_value to the top at max_value.
    """
    totals = [s["total"] for s in series]
    min_value, _, value_range = value_bounds(totals)
    last_index = (len(series) - 1) or 1
    points = []
    for i, sample in enumerate(series):
        x = geometry.pad_left + (i / last_index) * geometry.plot_width
        y = (geometry.pad_top + geometry.plot_height
             - ((sample["total"] - min_value) / value_range) * geometry.plot_height)
        points.append(Point(x, y, sample["total"], sample["date"]))
    return points

def build_line_path(points: Sequence[Point]) -> str:
    return " ".join(
        f"{'M' if i == 0 else 'L'} {to_fixed(p.x, 2)} {to_fixed(p.y, 2)}" for i, p in enumerate(points)
    )

def build_area_path(points: Sequence[Point], geometry: ChartGeometry = GEOMETRY) -> str:
    """Polyline closed along the plot baseline, for the gradient fill under the curve."""
    left = geometry.pad_left
    right = geometry.pad_left + geometry.plot_width
    bottom = geometry.baseline
    segments = [f"M {left} {bottom}"]
    segments.extend(f"L {to_fixed(p.x, 2)} {to_fixed(p.y, 2)}" for p in points)
    segments.append(f"L {right} {bottom}")
    segments.append("Z")
    return " ".join(segments)

def y_ticks(totals: Sequence[int], geometry: ChartGeometry = GEOMETRY) -> List[Tick]:
    min_value, _, value_range = value_bounds(totals)
    ticks = []
    for i in range(Y_TICK_INTERVALS + 1):
        value = min_value + (value_range * i / Y_TICK_INTERVALS)
        y = geometry.pad_top + geometry.plot_height - (i / Y_TICK_INTERVALS) * geometry.plot_height
        ticks.append(Tick(y, format_number(round_half_up(value))))
    return ticks

def x_ticks(points: Sequence[Point]) -> List[Tick]:
    """
    Label every `step`-th sample (step = n // 8, at least 1).

    The last sample is always labelled, even when its index is not a multiple
    of the step.
    """
    n = len(points)
    step = max(1, n // MAX_X_LABELS)
    ticks = [Tick(points[i].x, format_date(points[i].date)) for i in range(0, n, step)]
    if n > 1 and (n - 1) % step != 0:
        ticks.append(Tick(points[-1].x, format_date(points[-1].date)))
    return ticks

def summarize(totals: Sequence[int]) -> Summary:
    """
    Latest total and its change against the previous sample.

    A single sample compares against itself; a zero previous total reports a
    percent of "0". Non-negative changes (zero included) carry a "+" sign.
    """
    current_total = totals[-1]
    previous_total = totals[-2] if len(totals) > 1 else current_total
    change = current_total - previous_total
    if previous_total > 0:
        change_percent = to_fixed(change / previous_total * 100, 1)
    else:
        change_percent = "0"
    sign = "+" if change >= 0 else ""
    return Summary(current_total, previous_total, change, change_percent, sign)

# ---------------------------
# Jinja2 templates (embedded)
# ---------------------------
FONT = "system-ui, -apple-system, sans-serif"

CHART_SVG_TEMPLATE = """<?xml version="1.0" encoding="UTF-8"?>
<svg width="{{ g.width }}" height="{{ g.height }}" xmlns="http://www.w3.org/2000/svg">
  <defs>
    <!-- Gradient for area fill -->
    <linearGradient id="areaGradient" x1="0%" y1="0%" x2="0%" y2="100%">
      <stop offset="0%" style="stop-color:{{ c.accent }};stop-opacity:0.3" />
      <stop offset="100%" style="stop-color:{{ c.accent }};stop-opacity:0.05" />
    </linearGradient>

    <!-- Glow filter for line -->
    <filter id="glow">
      <feGaussianBlur stdDeviation="2" result="coloredBlur"/>
      <feMerge>
        <feMergeNode in="coloredBlur"/>
        <feMergeNode in="SourceGraphic"/>
      </feMerge>
    </filter>

    <!-- Animation -->
    <style>
      @keyframes draw {
        from { stroke-dashoffset: 2000; }
        to { stroke-dashoffset: 0; }
      }
      @keyframes fadeIn {
        from { opacity: 0; }
        to { opacity: 1; }
      }
      .line-path {
        stroke-dasharray: 2000;
        stroke-dashoffset: 2000;
        animation: draw 1.5s ease-out forwards;
      }
      .area-path {
        opacity: 0;
        animation: fadeIn 1s ease-out 0.5s forwards;
      }
      .data-point {
        opacity: 0;
        animation: fadeIn 0.5s ease-out 1s forwards;
      }
    </style>
  </defs>

  <!-- Background -->
  <rect width="{{ g.width }}" height="{{ g.height }}" fill="{{ c.background }}" rx="8"/>

  <!-- Title -->
  <text x="{{ num(g.width / 2) }}" y="25" text-anchor="middle" fill="{{ c.text }}" font-family="{{ font }}" font-size="16" font-weight="600">
    {{ owner|e }}/{{ repo|e }} Downloads
  </text>

  <!-- Stats -->
  <text x="{{ g.width - 20 }}" y="25" text-anchor="end" fill="{{ c.link }}" font-family="{{ font }}" font-size="14" font-weight="600">
    {{ total_label }} total
  </text>
  <text x="{{ g.width - 20 }}" y="42" text-anchor="end" fill="{{ change_color }}" font-family="{{ font }}" font-size="12">
    {{ s.sign }}{{ change_label }} ({{ s.sign }}{{ s.change_percent }}%)
  </text>

  <!-- Grid lines -->
  <g opacity="0.1">
{%- for tick in y_ticks %}
    <line x1="{{ g.pad_left }}" y1="{{ num(tick.position) }}" x2="{{ g.pad_left + g.plot_width }}" y2="{{ num(tick.position) }}"
          stroke="{{ c.text }}" stroke-width="1"/>
{%- endfor %}
  </g>

  <!-- Y-axis labels -->
{%- for tick in y_ticks %}
  <text x="{{ g.pad_left - 10 }}" y="{{ num(tick.position + 4) }}" text-anchor="end"
        fill="{{ c.muted }}" font-family="{{ font }}" font-size="11">
    {{ tick.label }}
  </text>
{%- endfor %}

  <!-- X-axis labels -->
{%- for tick in x_ticks %}
  <text x="{{ num(tick.position) }}" y="{{ g.baseline + 20 }}" text-anchor="middle"
        fill="{{ c.muted }}" font-family="{{ font }}" font-size="11">
    {{ tick.label }}
  </text>
{%- endfor %}

  <!-- Area under line -->
  <path d="{{ area_path }}" fill="url(#areaGradient)" class="area-path"/>

  <!-- Main line with glow -->
  <path d="{{ line_path }}" fill="none" stroke="{{ c.accent }}" stroke-width="3"
        stroke-linecap="round" stroke-linejoin="round" filter="url(#glow)" class="line-path"/>

  <!-- Data points -->
{%- for p in points %}
  <circle cx="{{ num(p.x) }}" cy="{{ num(p.y) }}" r="4" fill="{{ c.accent }}" stroke="{{ c.background }}" stroke-width="2" class="data-point"/>
{%- endfor %}

  <!-- Axis lines -->
  <line x1="{{ g.pad_left }}" y1="{{ g.pad_top }}" x2="{{ g.pad_left }}" y2="{{ g.baseline }}"
        stroke="{{ c.border }}" stroke-width="2"/>
  <line x1="{{ g.pad_left }}" y1="{{ g.baseline }}" x2="{{ g.pad_left + g.plot_width }}" y2="{{ g.baseline }}"
        stroke="{{ c.border }}" stroke-width="2"/>
</svg>"""

EMPTY_SVG_TEMPLATE = """<?xml version="1.0" encoding="UTF-8"?>
<svg width="{{ g.width }}" height="{{ g.height }}" xmlns="http://www.w3.org/2000/svg">
  <rect width="{{ g.width }}" height="{{ g.height }}" fill="{{ c.background }}" rx="8"/>
  <text x="{{ num(g.width / 2) }}" y="{{ num(g.height / 2) }}" text-anchor="middle" fill="{{ c.muted }}"
        font-family="{{ font }}" font-size="16">
    {{ owner|e }}/{{ repo|e }} - No data yet
  </text>
</svg>"""

# ---------------------------
# Rendering
# ---------------------------
def render_template(template_str: str, ctx: dict) -> str:
    tpl = Template(template_str)
    return tpl.render(**ctx)

def generate_empty_svg(owner: str, repo: str, geometry: ChartGeometry = GEOMETRY) -> str:
    ctx = {"owner": owner, "repo": repo, "g": geometry, "c": COLORS, "font": FONT, "num": format_coord}
    return render_template(EMPTY_SVG_TEMPLATE, ctx)

def generate_svg(owner: str, repo: str, series: Sequence[Mapping[str, Any]],
                 geometry: ChartGeometry = GEOMETRY) -> str:
    """
    Render the download trend chart for one repository.

    `series` is the ordered list of {"date", "total"} samples; it is only read.
    An empty series yields the placeholder document. Owner and repo are
    XML-escaped on the way into the template.
    """
    if not series:
        return generate_empty_svg(owner, repo, geometry)

    totals = [s["total"] for s in series]
    points = compute_points(series, geometry)
    summary = summarize(totals)

    ctx = {
        "owner": owner,
        "repo": repo,
        "g": geometry,
        "c": COLORS,
        "font": FONT,
        "num": format_coord,
        "s": summary,
        "total_label": format_number(summary.current_total),
        "change_label": format_number(summary.change),
        "change_color": COLORS["positive"] if summary.change >= 0 else COLORS["negative"],
        "points": points,
        "line_path": build_line_path(points),
        "area_path": build_area_path(points, geometry),
        "y_ticks": y_ticks(totals, geometry),
        "x_ticks": x_ticks(points),
    }
    return render_template(CHART_SVG_TEMPLATE, ctx)

# ---------------------------
# Config & data files
# ---------------------------
def ensure_dir(path: str):
    if not os.path.exists(path):
        os.makedirs(path, exist_ok=True)

def load_config(path: str) -> List[str]:
    """
    Read the list of "owner/repo" slugs from a JSON config: {"repos": [...]}.

    Unreadable or invalid JSON raises as-is; a missing or non-list "repos"
    entry raises ValueError.
    """
    with open(path, "r", encoding="utf-8") as f:
        config = json.load(f)
    repos = config.get("repos") if isinstance(config, dict) else None
    if not isinstance(repos, list):
        raise ValueError(f"{path}: expected a 'repos' list")
    return repos

def split_repo_slug(slug: str) -> Tuple[str, str]:
    owner, _, repo = slug.partition("/")
    if not owner or not repo or "/" in repo:
        raise ValueError(f"Invalid repository '{slug}', expected owner/repo")
    return owner, repo

def data_file_for(data_dir: str, owner: str, repo: str) -> str:
    return os.path.join(data_dir, f"{owner}_{repo}.json")

def chart_file_for(docs_dir: str, owner: str, repo: str) -> str:
    return os.path.join(docs_dir, f"{owner}_{repo}.svg")

def load_series(path: str) -> List[Dict[str, Any]]:
    """Read a stored series; a missing file is an empty series, not an error."""
    if not os.path.exists(path):
        return []
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, list):
        raise ValueError(f"{path}: expected a JSON list of {{date, total}} records")
    return data

# ---------------------------
# Outputs
# ---------------------------
def generate_chart(slug: str, data_dir: str, docs_dir: str) -> str:
    """Render one repository's chart into docs_dir and return the written path."""
    owner, repo = split_repo_slug(slug)
    series = load_series(data_file_for(data_dir, owner, repo))
    svg = generate_svg(owner, repo, series)

    ensure_dir(docs_dir)
    out_path = chart_file_for(docs_dir, owner, repo)
    with open(out_path, "w", encoding="utf-8") as f:
        f.write(svg)
    print(f"✓ Generated chart for {owner}/{repo}")
    return out_path

def generate_all(repos: List[str], data_dir: str, docs_dir: str) -> List[str]:
    written = [generate_chart(slug, data_dir, docs_dir) for slug in repos]
    print("\n✓ All charts generated")
    return written

# ---------------------------
# CLI entrypoint
# ---------------------------
def main(argv: Optional[List[str]] = None):
    """
    Command-line entrypoint.

    Resolves paths (CLI flag > environment variable > default), reads the repo
    list from the config unless --repo is given, and renders one chart per repo.
    Any failure is reported and ends the run with exit status 1.
    """
    parser = argparse.ArgumentParser(description="Generate SVG download trend charts for configured repositories.")
    parser.add_argument("--config", default=os.environ.get("DOWNLOAD_CHART_CONFIG", "config.json"),
                        help="JSON config listing repositories (default: config.json)")
    parser.add_argument("--data-dir", default=os.environ.get("DOWNLOAD_CHART_DATA_DIR", "data"),
                        help="Directory holding <owner>_<repo>.json series (default: data)")
    parser.add_argument("--docs-dir", default=os.environ.get("DOWNLOAD_CHART_DOCS_DIR", "docs"),
                        help="Directory to write <owner>_<repo>.svg charts into (default: docs)")
    parser.add_argument("--repo", action="append", metavar="OWNER/REPO",
                        help="Render only this repository (repeatable); skips the config file")
    args = parser.parse_args(argv)

    if args.repo:
        repos = args.repo
    else:
        try:
            repos = load_config(args.config)
        except Exception as e:
            print(f"ERROR reading config {args.config}:", e)
            sys.exit(1)

    try:
        generate_all(repos, args.data_dir, args.docs_dir)
    except Exception as e:
        print("ERROR generating charts:", e)
        sys.exit(1)

if __name__ == "__main__":
    main()
