"""
Chart rendering and export.

Figures are built with the object-oriented matplotlib API (no pyplot state), so
rendering is safe to call from request handlers running in worker threads.
"""
import io
import logging
from datetime import date

from matplotlib.axes import Axes
from matplotlib.backends.backend_pdf import PdfPages
from matplotlib.figure import Figure
from matplotlib.patches import Rectangle
from matplotlib.ticker import FuncFormatter

from app.agent.artifacts import ChartData
from app.render.formatting import (
    ChartStats,
    compute_stats,
    format_axis_tick,
    format_full_number,
    slice_percentages,
)

logger = logging.getLogger(__name__)

COLORS = [
    "#667eea", "#764ba2", "#f093fb", "#4facfe", "#43e97b",
    "#fa709a", "#fee140", "#30cfd0", "#a8edea", "#ff6e7f",
    "#38ef7d", "#11998e", "#fc4a1a", "#f7b733", "#00b4db",
]
HIGHLIGHT_COLOR = "#f7b733"
HEADER_COLOR = "#667eea"

A4_LANDSCAPE = (11.69, 8.27)
# The data table page is only added for charts with at most this many points.
TABLE_MAX_POINTS = 15
BRAND = "GRAFICOS AI"
DISCLAIMER = "Data are approximations. Verify with official sources."


def _plain(text: str) -> str:
    # Unescaped "$" pairs would be parsed as mathtext.
    return text.replace("$", r"\$")


def _shorten(label: str, limit: int = 15) -> str:
    return _plain(label if len(label) <= limit else f"{label[:limit]}...")


def _resolve_chart_type(chart: ChartData, chart_type: str | None) -> str:
    kind = chart_type or chart.chart_type
    if kind == "pie" and (any(value < 0 for value in chart.values) or not any(chart.values)):
        logger.warning("Pie chart %r needs positive values; rendering as bar instead.", chart.title)
        return "bar"
    return kind


def draw_chart(ax: Axes, chart: ChartData, chart_type: str | None = None, *, show_title: bool = False) -> None:
    """Draw `chart` onto `ax` as bar, line, pie or area."""
    kind = _resolve_chart_type(chart, chart_type)
    labels, values = chart.labels, chart.values
    highlight = chart.highlight_index

    if kind == "pie":
        ax.pie(
            values,
            labels=[_shorten(label) for label in labels],
            colors=[COLORS[i % len(COLORS)] for i in range(len(values))],
            explode=[0.08 if i == highlight else 0 for i in range(len(values))],
            autopct="%1.1f%%",
            startangle=90,
            wedgeprops={"edgecolor": "white"},
        )
        ax.axis("equal")
    else:
        positions = list(range(len(values)))
        if kind == "bar":
            colors = [HIGHLIGHT_COLOR if i == highlight else COLORS[0] for i in positions]
            ax.bar(positions, values, color=colors)
        elif kind == "line":
            ax.plot(positions, values, color=COLORS[0], marker="o", linewidth=2)
        else:
            ax.fill_between(positions, values, color=COLORS[0], alpha=0.35)
            ax.plot(positions, values, color=COLORS[0], linewidth=2)
        if highlight is not None and kind in ("line", "area"):
            ax.scatter([highlight], [values[highlight]], color=HIGHLIGHT_COLOR, s=80, zorder=3)

        rotate = len(labels) > 6
        ax.set_xticks(positions)
        ax.set_xticklabels(
            [_shorten(label) for label in labels],
            rotation=30 if rotate else 0,
            ha="right" if rotate else "center",
        )
        ax.yaxis.set_major_formatter(FuncFormatter(lambda value, _pos: format_axis_tick(value)))
        ax.grid(axis="y", alpha=0.3)
        ax.spines["top"].set_visible(False)
        ax.spines["right"].set_visible(False)
        if chart.unit:
            ax.set_ylabel(_plain(chart.unit))

    if show_title:
        ax.set_title(_plain(chart.title), fontsize=14, fontweight="bold")


def render_chart_png(chart: ChartData, chart_type: str | None = None, *, dpi: int = 200) -> bytes:
    fig = Figure(figsize=(10, 6))
    ax = fig.add_subplot()
    draw_chart(ax, chart, chart_type, show_title=True)
    fig.tight_layout()
    buf = io.BytesIO()
    fig.savefig(buf, format="png", dpi=dpi, bbox_inches="tight", facecolor="white")
    return buf.getvalue()


def _add_header(fig: Figure, text: str, generated_on: date | None = None) -> None:
    fig.add_artist(
        Rectangle((0, 0.93), 1, 0.07, transform=fig.transFigure, color=HEADER_COLOR, zorder=0)
    )
    fig.text(0.02, 0.955, text, fontsize=14, fontweight="bold", color="white")
    if generated_on is not None:
        fig.text(0.98, 0.955, generated_on.strftime("%d %B %Y"), fontsize=9, color="white", ha="right")


def _add_footer(fig: Figure, page: int, total_pages: int) -> None:
    fig.text(0.01, 0.01, f"Generated with Graficos AI - page {page} of {total_pages}", fontsize=8, color="#969696")
    fig.text(0.99, 0.01, DISCLAIMER, fontsize=8, color="#969696", ha="right")


def _cover_page(chart: ChartData, stats: ChartStats, generated_on: date) -> Figure:
    fig = Figure(figsize=A4_LANDSCAPE)
    _add_header(fig, BRAND, generated_on)
    fig.text(0.03, 0.86, _plain(chart.title), fontsize=18, fontweight="bold", color="#1e1e1e")

    unit = chart.unit or ""
    boxes = [
        ("Max", stats.max, "#dcfce7", "#166534"),
        ("Min", stats.min, "#fee2e2", "#991b1b"),
        ("Total", stats.sum, "#dbeafe", "#1e40af"),
        ("Average", stats.mean, "#f3e8ff", "#6b21a8"),
    ]
    for idx, (label, value, background, foreground) in enumerate(boxes):
        fig.text(
            0.04 + idx * 0.24,
            0.79,
            _plain(f"{label}: {format_full_number(value)} {unit}".strip()),
            fontsize=10,
            color=foreground,
            bbox={"boxstyle": "round,pad=0.6", "facecolor": background, "edgecolor": "none"},
        )

    ax = fig.add_axes((0.07, 0.12, 0.88, 0.6))
    draw_chart(ax, chart)
    return fig


def _table_page(chart: ChartData, stats: ChartStats) -> Figure:
    fig = Figure(figsize=A4_LANDSCAPE)
    _add_header(fig, "CHART DATA")
    ax = fig.add_axes((0.03, 0.08, 0.94, 0.82))
    ax.axis("off")

    unit = chart.unit or ""
    rows: list[list[str]] = []
    colours: list[list[str]] = []
    for idx, (label, value, share) in enumerate(zip(chart.labels, chart.values, slice_percentages(chart.values))):
        note = ""
        colour = "#fafafa" if idx % 2 == 0 else "#ffffff"
        if idx == stats.max_index:
            note, colour = "Max", "#dcfce7"
        elif idx == stats.min_index:
            note, colour = "Min", "#fee2e2"
        rows.append([str(idx + 1), _plain(label[:40]), _plain(f"{format_full_number(value)} {unit}".strip()), f"{share:.1f}%", note])
        colours.append([colour] * 5)

    table = ax.table(
        cellText=rows,
        colLabels=["#", "Label", "Value", "% of total", ""],
        cellColours=colours,
        colColours=["#f0f0f0"] * 5,
        colWidths=[0.06, 0.46, 0.24, 0.14, 0.1],
        cellLoc="left",
        loc="upper center",
    )
    table.auto_set_font_size(False)
    table.set_fontsize(10)
    table.scale(1, 1.4)
    return fig


def pdf_page_count(chart: ChartData) -> int:
    return 2 if len(chart.values) <= TABLE_MAX_POINTS else 1


def render_chart_pdf(chart: ChartData, *, generated_on: date | None = None) -> bytes:
    """
    A4 landscape report: cover page with summary statistics and the chart, plus a
    data table page for charts small enough to list every point.
    """
    stats = compute_stats(chart.values)
    pages = [_cover_page(chart, stats, generated_on or date.today())]
    if pdf_page_count(chart) == 2:
        pages.append(_table_page(chart, stats))

    buf = io.BytesIO()
    with PdfPages(buf, metadata={"Title": chart.title, "Creator": BRAND}) as pdf:
        for page_number, fig in enumerate(pages, start=1):
            _add_footer(fig, page_number, len(pages))
            pdf.savefig(fig)
    logger.info("Exported %r as a %s-page PDF", chart.title, len(pages))
    return buf.getvalue()
