from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Literal, Optional

import aiohttp
from fastapi import Depends, FastAPI, HTTPException, Query, Request

from storefinder.config import get_settings
from storefinder.errors import MalformedResponse, StoreApiError
from storefinder.models import (
    Coordinates,
    NewStore,
    QueryInput,
    SearchInput,
    SelectInput,
    SessionCreate,
    SessionView,
)
from storefinder.services.distance import haversine_km
from storefinder.services.geolocation import (
    GeolocationProvider,
    IpGeolocationSource,
    PositionSource,
    ReportedPosition,
)
from storefinder.services.registry import SessionRegistry
from storefinder.services.session import FinderSession
from storefinder.services.store_api import StoreApiClient

settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.http = aiohttp.ClientSession()
    app.state.api = StoreApiClient(app.state.http, settings)
    app.state.sessions = SessionRegistry(ttl_s=settings.session_ttl_s, max_size=settings.session_max_size)
    try:
        yield
    finally:
        app.state.sessions.clear()
        await app.state.http.close()


app = FastAPI(
    title=settings.app_name,
    version=settings.version,
    description="Nearby store finder: geolocation, autocomplete and paginated search sessions.",
    lifespan=lifespan,
)


def get_api(request: Request) -> StoreApiClient:
    return request.app.state.api


def get_registry(request: Request) -> SessionRegistry:
    return request.app.state.sessions


def get_session(session_id: str, registry: SessionRegistry = Depends(get_registry)) -> FinderSession:
    session = registry.get(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Finder session not found")
    return session


def position_source(request: Request, body: SessionCreate, api: StoreApiClient) -> PositionSource:
    if body.denied or (body.latitude is not None and body.longitude is not None):
        return ReportedPosition(body.latitude, body.longitude, denied=body.denied)
    forwarded = request.headers.get("x-forwarded-for", "").split(",")[0].strip()
    if forwarded:
        ip = forwarded
    elif request.client is not None:
        ip = request.client.host
    else:
        ip = ""
    return IpGeolocationSource(api.session, settings, ip=ip)


@app.get("/", tags=["Root"])
async def root():
    return {"ok": True, "service": settings.app_name, "version": settings.version}


@app.get("/health", tags=["Healthcheck"])
async def health():
    return {"ok": True}


@app.post("/api/sessions", response_model=SessionView, status_code=201, tags=["Finder Sessions"])
async def create_session(
    body: SessionCreate,
    request: Request,
    api: StoreApiClient = Depends(get_api),
    registry: SessionRegistry = Depends(get_registry),
):
    provider = GeolocationProvider.from_settings(position_source(request, body, api), settings)
    session = FinderSession(api, provider, settings=settings)
    await session.start()
    registry.create(session)
    logger.info("Finder session %s started (location %s)", session.id, provider.status)
    return session.view()


@app.get("/api/sessions/{session_id}", response_model=SessionView, tags=["Finder Sessions"])
async def read_session(
    order: Literal["server", "distance"] = Query("server"),
    session: FinderSession = Depends(get_session),
):
    return session.view(order=order)


@app.delete("/api/sessions/{session_id}", status_code=204, tags=["Finder Sessions"])
async def close_session(session_id: str, registry: SessionRegistry = Depends(get_registry)):
    if not registry.drop(session_id):
        raise HTTPException(status_code=404, detail="Finder session not found")


@app.put("/api/sessions/{session_id}/query", response_model=SessionView, tags=["Finder Sessions"])
async def update_query(body: QueryInput, session: FinderSession = Depends(get_session)):
    session.type(body.text)
    return session.view()


@app.post("/api/sessions/{session_id}/search", response_model=SessionView, tags=["Finder Sessions"])
async def search(body: Optional[SearchInput] = None, session: FinderSession = Depends(get_session)):
    if body is not None and body.text is not None:
        session.type(body.text)
    await session.commit()
    return session.view()


@app.post("/api/sessions/{session_id}/suggestions/select", response_model=SessionView, tags=["Finder Sessions"])
async def select_suggestion(body: SelectInput, session: FinderSession = Depends(get_session)):
    await session.select(body.label)
    return session.view()


@app.post("/api/sessions/{session_id}/suggestions/dismiss", response_model=SessionView, tags=["Finder Sessions"])
async def dismiss_suggestions(session: FinderSession = Depends(get_session)):
    session.dismiss_suggestions()
    return session.view()


@app.post("/api/sessions/{session_id}/more", response_model=SessionView, tags=["Finder Sessions"])
async def load_more(session: FinderSession = Depends(get_session)):
    await session.load_more()
    return session.view()


@app.put("/api/sessions/{session_id}/location", response_model=SessionView, tags=["Finder Sessions"])
async def update_location(body: Coordinates, session: FinderSession = Depends(get_session)):
    await session.set_location(body)
    return session.view()


@app.post("/api/stores", status_code=201, tags=["Api Stores"])
async def add_store(body: NewStore, api: StoreApiClient = Depends(get_api)):
    try:
        echoed = await api.add_store(body)
    except (StoreApiError, MalformedResponse) as e:
        logger.error("Failed to add shop %r: %s", body.name, e)
        raise HTTPException(status_code=502, detail="Failed to add shop")
    return {"ok": True, "store": echoed}


@app.get("/api/distance", tags=["Api Distance"])
async def api_distance(
    lat1: str = Query(...),
    lon1: str = Query(...),
    lat2: str = Query(...),
    lon2: str = Query(...),
):
    return {"distance_km": haversine_km(lat1, lon1, lat2, lon2)}
