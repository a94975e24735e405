import re

from fastapi import APIRouter, Response

from app.api.deps import ChartServiceDep
from app.core.errors import InvalidRequestError
from app.render.exporter import render_chart_pdf, render_chart_png

router = APIRouter()

MEDIA_TYPES = {
    "pdf": "application/pdf",
    "png": "image/png",
}


def _download_name(title: str, extension: str) -> str:
    stem = re.sub(r"[^\w\- ]+", "", title).strip().replace(" ", "_") or "chart"
    return f"{stem[:80]}.{extension}"


@router.get("/export/{share_id}")
def export_chart(share_id: str, service: ChartServiceDep, format: str = "pdf") -> Response:
    """Download a stored chart as a PDF report or a PNG image."""
    fmt = format.lower()
    if fmt not in MEDIA_TYPES:
        raise InvalidRequestError(f"Unsupported export format '{format}'", details="Use pdf or png")

    chart = service.get(share_id=share_id)
    chart_data = chart.to_chart_data()
    content = render_chart_pdf(chart_data) if fmt == "pdf" else render_chart_png(chart_data)
    return Response(
        content=content,
        media_type=MEDIA_TYPES[fmt],
        headers={"Content-Disposition": f'attachment; filename="{_download_name(chart.title, fmt)}"'},
    )
