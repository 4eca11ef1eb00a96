"""
FastAPI backend for the injector calibration calculator.
Provides a REST API over in-memory calibration sessions: row edits in, fitted flow
rate, deadtime and per-row model error out.
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional

from fastapi import FastAPI, HTTPException, Response, status
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from calculations.engine import CharacterizationSnapshot
from calculations.formatting import finite_or_none
from calculations.rows import MeasurementRow
from config import CORS_ORIGINS, LOG_LEVEL, MAX_SESSIONS
from sessions import CalibrationSession, SessionRegistry

__version__ = "0.1.0"

logger = logging.getLogger(__name__)


# --- Pydantic schemas ---

class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    version: str


class RowUpdate(BaseModel):
    """Schema for editing one field of a row with raw user text."""
    field: str  # injections | pulse_width_ms | total_mass_g (camelCase aliases accepted)
    value: Optional[str] = None


class IncludeUpdate(BaseModel):
    """Schema for toggling whether a row contributes to the fit."""
    included: bool


class RowMetricsResponse(BaseModel):
    """Computed values for a complete row. None where the fit is undefined."""
    actual_mass_per_pulse_mg: Optional[float]
    average_flow_g_per_s: Optional[float]
    modeled_mass_per_pulse_mg: Optional[float]
    percent_error: Optional[float]
    modeled_pulse_width_ms: Optional[float]
    small_pulse_adder_ms: Optional[float]


class RowResponse(BaseModel):
    """A stored row; metrics is None while the row is incomplete."""
    id: int
    injections: Optional[float]
    pulse_width_ms: Optional[float]
    total_mass_g: Optional[float]
    include_in_fit: bool
    metrics: Optional[RowMetricsResponse] = None


class ChartPoint(BaseModel):
    pulse_width_ms: float
    value: Optional[float]
    included: bool = True


class ChartResponse(BaseModel):
    """Series for plotting: measured mass-per-pulse, fitted line, average flow."""
    measured: list[ChartPoint]
    fitted: list[ChartPoint]
    average_flow: list[ChartPoint]


class SummaryResponse(BaseModel):
    flow_rate_g_per_s: Optional[float]
    flow_rate_cc_per_min: Optional[float]
    deadtime_ms: Optional[float]
    r_squared: Optional[float]
    n_points: int


class SessionResponse(BaseModel):
    """
    Full session response: rows, chart series, summary and formatted display values.
    Calculations are recomputed on every change and never stored.
    NaN is not valid JSON, so undefined numbers are returned as null.
    """
    id: int
    created_at: datetime
    rows: list[RowResponse]
    chart: ChartResponse
    summary: SummaryResponse
    display: dict


class SessionListItem(BaseModel):
    """Lightweight session entry for list view."""
    id: int
    row_count: int
    created_at: datetime


# --- Helpers ---

def _row_to_response(row: MeasurementRow, metrics) -> RowResponse:
    return RowResponse(
        id=row.id,
        injections=finite_or_none(row.injections),
        pulse_width_ms=finite_or_none(row.pulse_width_ms),
        total_mass_g=finite_or_none(row.total_mass_g),
        include_in_fit=row.include_in_fit,
        metrics=None if metrics is None else RowMetricsResponse(
            actual_mass_per_pulse_mg=finite_or_none(metrics.actual_mass_per_pulse_mg),
            average_flow_g_per_s=finite_or_none(metrics.average_flow_g_per_s),
            modeled_mass_per_pulse_mg=finite_or_none(metrics.modeled_mass_per_pulse_mg),
            percent_error=finite_or_none(metrics.percent_error),
            modeled_pulse_width_ms=finite_or_none(metrics.modeled_pulse_width_ms),
            small_pulse_adder_ms=finite_or_none(metrics.small_pulse_adder_ms),
        ),
    )


def _chart_from_snapshot(snapshot: CharacterizationSnapshot) -> ChartResponse:
    return ChartResponse(
        measured=[
            ChartPoint(
                pulse_width_ms=p.pulse_width_ms,
                value=finite_or_none(p.mass_per_pulse_mg),
                included=p.included,
            )
            for p in snapshot.measured_series
        ],
        fitted=[
            ChartPoint(pulse_width_ms=p.pulse_width_ms, value=finite_or_none(p.mass_per_pulse_mg))
            for p in snapshot.fitted_series
        ],
        average_flow=[
            ChartPoint(pulse_width_ms=p.pulse_width_ms, value=finite_or_none(p.average_flow_g_per_s))
            for p in snapshot.average_flow_series
        ],
    )


def _build_session_response(session: CalibrationSession) -> SessionResponse:
    """Convert the engine's current snapshot into the API response."""
    engine = session.engine
    snapshot = engine.snapshot
    summary = snapshot.summary

    return SessionResponse(
        id=session.id,
        created_at=session.created_at,
        rows=[_row_to_response(entry.row, entry.metrics) for entry in snapshot.table],
        chart=_chart_from_snapshot(snapshot),
        summary=SummaryResponse(
            flow_rate_g_per_s=finite_or_none(summary.flow_rate_g_per_s),
            flow_rate_cc_per_min=finite_or_none(summary.flow_rate_cc_per_min),
            deadtime_ms=finite_or_none(summary.deadtime_ms),
            r_squared=finite_or_none(summary.r_squared),
            n_points=summary.n_points,
        ),
        display=engine.display(),
    )


def _get_session_or_404(session_id: int) -> CalibrationSession:
    session = registry.get(session_id)
    if not session:
        raise HTTPException(status_code=404, detail=f"Session {session_id} not found")
    return session


def _row_not_found(session_id: int, row_id: int) -> HTTPException:
    return HTTPException(status_code=404, detail=f"Row {row_id} not found in session {session_id}")


# --- FastAPI app ---

registry = SessionRegistry(max_sessions=MAX_SESSIONS)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Apply the configured log level; drop all sessions on shutdown."""
    logging.getLogger().setLevel(LOG_LEVEL)
    logger.info(f"Injector calibration backend starting (max sessions: {registry.max_sessions})")
    yield
    registry.clear()


app = FastAPI(
    title="Injector Calibration Backend",
    description="Backend API for fuel injector flow rate and deadtime characterization",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# --- Endpoints ---

@app.get("/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint to verify backend is running."""
    return HealthResponse(status="ok", version=__version__)


@app.post("/injector/sessions", response_model=SessionResponse, status_code=201)
async def create_session():
    """Start a new calibration session with a single blank row."""
    session = registry.create()
    with session.lock:
        return _build_session_response(session)


@app.get("/injector/sessions", response_model=list[SessionListItem])
async def list_sessions():
    """List live sessions (no rows, no calculations)."""
    items = []
    for session in registry.all():
        with session.lock:
            row_count = len(session.engine.store)
        items.append(SessionListItem(id=session.id, row_count=row_count, created_at=session.created_at))
    return items


@app.get("/injector/sessions/{session_id}", response_model=SessionResponse)
async def get_session(session_id: int):
    """Get a session with all rows and freshly computed values."""
    session = _get_session_or_404(session_id)
    with session.lock:
        return _build_session_response(session)


@app.delete("/injector/sessions/{session_id}", status_code=204)
async def delete_session(session_id: int):
    """Discard a session and all its rows."""
    if not registry.delete(session_id):
        raise HTTPException(status_code=404, detail=f"Session {session_id} not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@app.post("/injector/sessions/{session_id}/rows", response_model=SessionResponse, status_code=201)
async def append_row(session_id: int):
    """Append a blank row. The new row is the last entry in `rows`."""
    session = _get_session_or_404(session_id)
    with session.lock:
        session.engine.append()
        return _build_session_response(session)


@app.patch("/injector/sessions/{session_id}/rows/{row_id}", response_model=SessionResponse)
async def update_row(session_id: int, row_id: int, data: RowUpdate):
    """
    Set one field of a row from raw text. Unparseable text is stored as missing.
    Completing the last row appends a new blank row.
    """
    session = _get_session_or_404(session_id)
    with session.lock:
        try:
            found = session.engine.update(row_id, data.field, data.value)
        except ValueError as e:
            raise HTTPException(status_code=422, detail=str(e))
        if not found:
            raise _row_not_found(session_id, row_id)
        return _build_session_response(session)


@app.put("/injector/sessions/{session_id}/rows/{row_id}/include", response_model=SessionResponse)
async def set_row_include(session_id: int, row_id: int, data: IncludeUpdate):
    """Include or exclude a row from the fit. Excluded rows keep their metrics."""
    session = _get_session_or_404(session_id)
    with session.lock:
        if not session.engine.set_include(row_id, data.included):
            raise _row_not_found(session_id, row_id)
        return _build_session_response(session)


@app.delete("/injector/sessions/{session_id}/rows/{row_id}", response_model=SessionResponse)
async def remove_row(session_id: int, row_id: int):
    """Remove a row. Removing the last remaining row leaves it in place."""
    session = _get_session_or_404(session_id)
    with session.lock:
        if not session.engine.remove(row_id):
            raise _row_not_found(session_id, row_id)
        return _build_session_response(session)
