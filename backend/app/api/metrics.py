"""Scrape endpoint for the conversation counters."""

from fastapi import APIRouter, Response

from app.monitoring import PROMETHEUS_CONTENT_TYPE, registry

router = APIRouter(tags=["metrics"])


@router.get("/metrics", response_class=Response, include_in_schema=False)
def export_metrics() -> Response:
    return Response(content=registry.render(), media_type=PROMETHEUS_CONTENT_TYPE)
