from __future__ import annotations

import asyncio
import logging
import time
import uuid
from contextlib import asynccontextmanager
from typing import Annotated

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware

from .advice import AdviceClient, fallback_advice
from .graph_assets import load_city_asset, load_city_graph
from .logging_utils import log_event
from .metrics_store import metrics_snapshot, record_request, record_route_outcome
from .models import (
    DangerZoneListResponse,
    DangerZonePayload,
    GraphSummaryResponse,
    LatLng,
    NodeListResponse,
    NodePayload,
    RouteAdviceResponse,
    RouteRequest,
    RouteResponse,
    SafetyAdvice,
    SegmentRiskPayload,
)
from .route_cache import clear_route_cache, get_cached_route, route_cache_key, route_cache_stats, set_cached_route
from .route_engine import RouteResult, find_route
from .route_stats import risk_band, segment_risk_profile
from .routing_errors import UnknownNodeError, normalize_reason_code
from .routing_graph import SafetyGraph
from .settings import settings


@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.graph = load_city_graph()
    app.state.center = _asset_center()
    app.state.advice = AdviceClient(
        api_key=settings.advice_api_key,
        base_url=settings.advice_base_url,
        model=settings.advice_model,
        timeout_s=settings.advice_timeout_s,
        max_retries=settings.advice_max_retries,
    )
    yield
    await app.state.advice.aclose()


app = FastAPI(title="SafeWalk Router", version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins or ["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _asset_center() -> LatLng | None:
    center = load_city_asset().center
    if center is None:
        return None
    return LatLng(lat=center.lat, lon=center.lon)


def city_graph(request: Request) -> SafetyGraph:
    graph: SafetyGraph | None = getattr(request.app.state, "graph", None)
    if graph is None:
        raise HTTPException(
            status_code=503,
            detail={"reason_code": "graph_unavailable", "message": "street graph not initialised"},
        )
    return graph


def advice_client(request: Request) -> AdviceClient:
    client: AdviceClient | None = getattr(request.app.state, "advice", None)
    if client is None:
        raise HTTPException(status_code=503, detail="advice client not initialised")
    return client


GraphDep = Annotated[SafetyGraph, Depends(city_graph)]
AdviceDep = Annotated[AdviceClient, Depends(advice_client)]


@app.get("/")
async def root() -> dict[str, str]:
    return {"message": "Backend is running. Visit /docs for the API UI.", "docs": "/docs"}


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/nodes", response_model=NodeListResponse)
async def list_nodes(request: Request, graph: GraphDep) -> NodeListResponse:
    return NodeListResponse(
        center=getattr(request.app.state, "center", None),
        nodes=[
            NodePayload(
                id=node.id,
                label=node.label,
                coordinate=LatLng(lat=node.coordinate.lat, lon=node.coordinate.lon),
            )
            for node in graph.nodes.values()
        ],
    )


@app.get("/zones", response_model=DangerZoneListResponse)
async def list_zones(graph: GraphDep) -> DangerZoneListResponse:
    return DangerZoneListResponse(
        zones=[
            DangerZonePayload(
                id=zone.id,
                name=zone.name,
                polygon=[LatLng(lat=p.lat, lon=p.lon) for p in zone.polygon],
                risk_level=zone.risk_level,
                description=zone.description,
            )
            for zone in graph.zones
        ],
        containment=graph.containment,
    )


@app.get("/graph/summary", response_model=GraphSummaryResponse)
async def graph_summary(graph: GraphDep) -> GraphSummaryResponse:
    return GraphSummaryResponse.model_validate(graph.summary())


def _record_outcome(response: RouteResponse) -> None:
    if response.found:
        record_route_outcome(
            "found",
            mode=response.mode.value,
            distance_m=response.total_distance_m,
            safety_score=response.average_safety_score,
        )
    else:
        record_route_outcome(normalize_reason_code(response.reason_code or ""), mode=response.mode.value)


def _route_response(graph: SafetyGraph, req: RouteRequest) -> RouteResponse:
    key = route_cache_key(graph.version, req.start_id, req.end_id, req.mode)
    cached = get_cached_route(key)
    if cached is not None:
        _record_outcome(cached)
        return cached

    try:
        result = find_route(req.start_id, req.end_id, graph, req.mode)
    except UnknownNodeError as e:
        reason_code = normalize_reason_code(e.reason_code)
        record_route_outcome(reason_code)
        raise HTTPException(status_code=404, detail={"reason_code": reason_code, "message": str(e)}) from e

    if isinstance(result, RouteResult):
        response = RouteResponse(
            found=True,
            start_id=req.start_id,
            end_id=req.end_id,
            mode=req.mode,
            path=list(result.path),
            coordinates=[
                LatLng(lat=graph.nodes[n].coordinate.lat, lon=graph.nodes[n].coordinate.lon)
                for n in result.path
            ],
            total_distance_m=result.total_distance_m,
            average_safety_score=result.average_safety_score,
            risk_band=risk_band(result.average_safety_score),
            segment_risk=[
                SegmentRiskPayload(node_id=p.node_id, label=p.label, risk=p.risk)
                for p in segment_risk_profile(graph, result.path)
            ],
        )
    else:
        response = RouteResponse(
            found=False,
            start_id=req.start_id,
            end_id=req.end_id,
            mode=req.mode,
            reason_code=result.reason_code,
        )
    _record_outcome(response)
    set_cached_route(key, response)
    return response


@app.post("/route", response_model=RouteResponse)
async def compute_route(req: RouteRequest, graph: GraphDep) -> RouteResponse:
    request_id = str(uuid.uuid4())
    t0 = time.perf_counter()
    error = False
    try:
        response = _route_response(graph, req)
    except HTTPException:
        error = True
        raise
    finally:
        record_request("/route", duration_ms=(time.perf_counter() - t0) * 1000, error=error)

    log_event(
        "route_request",
        request_id=request_id,
        start_id=req.start_id,
        end_id=req.end_id,
        mode=req.mode.value,
        found=response.found,
        duration_ms=round((time.perf_counter() - t0) * 1000, 2),
    )
    return response


async def _bounded_advice(client: AdviceClient, origin: str, destination: str, score: float) -> SafetyAdvice:
    # Outer deadline covers every retry of the client plus backoff.
    deadline_s = (settings.advice_timeout_s * settings.advice_max_retries) + 2.0
    try:
        return await asyncio.wait_for(client.get_safety_advice(origin, destination, score), timeout=deadline_s)
    except TimeoutError:
        log_event("advice_fallback", level=logging.WARNING, reason="deadline_exceeded", deadline_s=deadline_s)
        return fallback_advice()


@app.post("/route/advice", response_model=RouteAdviceResponse)
async def compute_route_with_advice(req: RouteRequest, graph: GraphDep, advice: AdviceDep) -> RouteAdviceResponse:
    t0 = time.perf_counter()
    error = False
    try:
        route = _route_response(graph, req)
    except HTTPException:
        error = True
        raise
    finally:
        record_request("/route/advice", duration_ms=(time.perf_counter() - t0) * 1000, error=error)

    if not route.found or route.average_safety_score is None:
        return RouteAdviceResponse(route=route, advice=None)

    tips = await _bounded_advice(
        advice,
        graph.nodes[req.start_id].label,
        graph.nodes[req.end_id].label,
        route.average_safety_score,
    )
    return RouteAdviceResponse(route=route, advice=tips)


@app.get("/metrics")
async def metrics() -> dict[str, object]:
    return metrics_snapshot()


@app.get("/cache/stats")
async def cache_stats() -> dict[str, int]:
    return route_cache_stats()


@app.delete("/cache")
async def clear_cache() -> dict[str, int]:
    return {"cleared": clear_route_cache()}
