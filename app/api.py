"""HTTP route definitions for the service."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from app.schemas import (
    ConnectRequest,
    DiagnosticMessage,
    ExportFormat,
    ExportPreview,
    LineIssue,
    Reading,
    ReadSummary,
    SessionStatus,
    WaitResponse,
)
from services.errors import NotConnectedError, TransportError, WaitCancelled
from services.export import ExportTable, format_preview
from services.session import ReadResult, SessionService, build_default_session
from settings import get_settings
from storage.export_files import CSV_MEDIA_TYPE, XLSX_MEDIA_TYPE, export_filename, render_export

logger = logging.getLogger(__name__)

router = APIRouter()


def get_session() -> SessionService:
    return build_default_session()


@contextmanager
def _translate_errors() -> Iterator[None]:
    try:
        yield
    except NotConnectedError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except WaitCancelled as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Session was closed while waiting.",
        ) from exc
    except TransportError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc
    except TimeoutError as exc:
        raise HTTPException(status_code=status.HTTP_504_GATEWAY_TIMEOUT, detail=str(exc)) from exc


def _status_payload(session: SessionService) -> SessionStatus:
    snapshot = session.status()
    return SessionStatus(
        state=snapshot.state,
        port=snapshot.port,
        line_count=snapshot.line_count,
        record_count=snapshot.record_count,
        has_batch=snapshot.has_batch,
        last_error=snapshot.last_error,
    )


def _read_summary(result: ReadResult) -> ReadSummary:
    return ReadSummary(
        line_count=result.line_count,
        record_count=len(result.records),
        errors=[
            LineIssue(line_number=error.line_number, line=error.line, reason=error.reason)
            for error in result.errors
        ],
    )


def _preview(table: ExportTable) -> ExportPreview:
    return ExportPreview(
        header=table.header,
        rows=[
            Reading(
                index=row.index,
                timestamp=row.record.timestamp,
                temperature_celsius=row.record.temperature_celsius,
                humidity_percent=row.record.humidity_percent,
                chill_units=row.chill_units,
                cumulative_chill_units=row.cumulative_chill_units,
            )
            for row in table.rows
        ],
        preview=format_preview(table.rows),
    )


@router.get("/session", response_model=SessionStatus, summary="Current serial session state.")
async def get_session_status(session: SessionService = Depends(get_session)) -> SessionStatus:
    return _status_payload(session)


@router.post(
    "/session/connect",
    response_model=SessionStatus,
    summary="Open the serial port and start reading from the device.",
)
def connect_session(
    request: Optional[ConnectRequest] = None,
    session: SessionService = Depends(get_session),
) -> SessionStatus:
    request = request or ConnectRequest()
    port = request.port or get_settings().serial_port
    if not port:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No serial port given and SERIAL_PORT is not set.",
        )
    with _translate_errors():
        session.connect(port, baudrate=request.baudrate)
    return _status_payload(session)


@router.post("/session/disconnect", response_model=SessionStatus, summary="Close the session.")
def disconnect_session(session: SessionService = Depends(get_session)) -> SessionStatus:
    session.close()
    return _status_payload(session)


@router.post(
    "/session/wait",
    response_model=WaitResponse,
    summary="Block until the device reports that its log file is ready.",
)
def wait_for_trigger(
    timeout: Optional[float] = Query(None, gt=0, description="Seconds to wait."),
    session: SessionService = Depends(get_session),
) -> WaitResponse:
    with _translate_errors():
        found = session.wait_for_trigger(timeout=timeout)
    return WaitResponse(marker=session.config.trigger_marker, found=found)


@router.post(
    "/session/read",
    response_model=ReadSummary,
    summary="Send the read command and parse the log the device returns.",
)
def read_log(
    timeout: Optional[float] = Query(None, gt=0, description="Seconds to wait for the end marker."),
    session: SessionService = Depends(get_session),
) -> ReadSummary:
    with _translate_errors():
        result = session.read_log(timeout=timeout)
    return _read_summary(result)


@router.post(
    "/session/auto",
    response_model=ReadSummary,
    summary="Wait for the trigger, then read and parse the log.",
)
def auto_flow(
    timeout: Optional[float] = Query(None, gt=0, description="Seconds for the whole flow."),
    session: SessionService = Depends(get_session),
) -> ReadSummary:
    with _translate_errors():
        result = session.auto(timeout=timeout)
    return _read_summary(result)


@router.get(
    "/session/records",
    response_model=ExportPreview,
    summary="Parsed readings of the last read cycle with chill units.",
)
async def get_records(session: SessionService = Depends(get_session)) -> ExportPreview:
    return _preview(session.export())


@router.get("/session/export", summary="Download the last read cycle as a spreadsheet.")
async def download_export(
    export_format: ExportFormat = Query(ExportFormat.xlsx, alias="format"),
    formulas: bool = Query(False, description="Emit spreadsheet formulas for derived columns."),
    session: SessionService = Depends(get_session),
) -> Response:
    table = session.export()
    content = render_export(table, export_format.value, use_formulas=formulas)
    media_type = XLSX_MEDIA_TYPE if export_format is ExportFormat.xlsx else CSV_MEDIA_TYPE
    filename = export_filename(export_format.value)
    logger.info(
        "Export rendered", extra={"record_count": len(table.rows), "path": filename}
    )
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get(
    "/diagnostics",
    response_model=List[DiagnosticMessage],
    summary="Progress and problem messages after a sequence number.",
)
async def get_diagnostics(
    since: int = Query(0, ge=0),
    session: SessionService = Depends(get_session),
) -> List[DiagnosticMessage]:
    return [
        DiagnosticMessage(
            sequence=item.sequence,
            created_at=item.created_at,
            level=logging.getLevelName(item.level),
            message=item.message,
        )
        for item in session.diagnostics.snapshot(since=since)
    ]


@router.get(
    "/health",
    summary="Health check endpoint.",
    status_code=status.HTTP_200_OK,
)
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@router.get(
    "/",
    summary="Root endpoint mirrors health information.",
    status_code=status.HTTP_200_OK,
)
async def root() -> dict[str, str]:
    return {"status": "ok", "detail": "See /health for service status."}
