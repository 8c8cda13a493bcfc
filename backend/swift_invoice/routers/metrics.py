"""Prometheus metrics exposition router.

Serves the default prometheus_client registry (request counters and latency
histograms from the HTTP middleware, invoice operation counters) in text format.
"""
from fastapi import APIRouter, Response
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST

router = APIRouter()


@router.get("/metrics", include_in_schema=False)
async def prometheus_metrics() -> Response:  # noqa: D401
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
