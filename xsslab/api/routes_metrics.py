from fastapi import APIRouter, Request, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from xsslab.metrics import METRICS_REGISTRY

router = APIRouter()


@router.get("/metrics")
async def metrics(request: Request):
    # export the registry pinned on app.state (same one the services write to)
    sm = getattr(request.app.state, "lab_metrics", None)
    reg = sm["registry"] if isinstance(sm, dict) and "registry" in sm else METRICS_REGISTRY
    return Response(content=generate_latest(reg), media_type=CONTENT_TYPE_LATEST)
