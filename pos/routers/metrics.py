from fastapi import APIRouter, Depends, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from pos.cache import CacheStore
from pos.dependencies import get_cache, get_metrics
from pos.observability import MetricsRegistry

router = APIRouter(tags=["metrics"])


@router.get("/metrics")
async def prometheus_metrics(metrics: MetricsRegistry = Depends(get_metrics)):
    return Response(generate_latest(metrics.registry), media_type=CONTENT_TYPE_LATEST)


@router.get("/api/v1/metrics/cache")
async def cache_metrics(cache: CacheStore = Depends(get_cache)):
    return {"cache_info": cache.stats}
