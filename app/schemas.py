"""Pydantic schemas for the HTTP API layer."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class SessionState(str, Enum):
    """Connection lifecycle states exposed via the API."""

    idle = "idle"
    connected = "connected"
    failed = "failed"
    closed = "closed"


class ExportFormat(str, Enum):
    xlsx = "xlsx"
    csv = "csv"


class ConnectRequest(BaseModel):
    """Serial port to open; omitted fields fall back to settings."""

    port: Optional[str] = Field(default=None, description="Device name or pyserial URL.")
    baudrate: Optional[int] = Field(default=None, gt=0)


class SessionStatus(BaseModel):
    """Current state of the serial session."""

    state: SessionState
    port: Optional[str] = None
    line_count: int = Field(..., ge=0)
    record_count: int = Field(..., ge=0)
    has_batch: bool = False
    last_error: Optional[str] = None


class WaitResponse(BaseModel):
    marker: str
    found: bool


class Reading(BaseModel):
    """A parsed reading with its derived chill-unit columns."""

    index: int = Field(..., ge=1)
    timestamp: str
    temperature_celsius: float
    humidity_percent: float
    chill_units: float
    cumulative_chill_units: float


class LineIssue(BaseModel):
    """Details about a line that looked like a reading but failed to parse."""

    line_number: int = Field(..., ge=1)
    line: str
    reason: str


class ReadSummary(BaseModel):
    """Outcome of one read cycle."""

    line_count: int = Field(..., ge=0)
    record_count: int = Field(..., ge=0)
    errors: List[LineIssue] = Field(default_factory=list)


class ExportPreview(BaseModel):
    """Export table as JSON, with one preview line per reading."""

    header: List[str]
    rows: List[Reading] = Field(default_factory=list)
    preview: List[str] = Field(default_factory=list)


class DiagnosticMessage(BaseModel):
    sequence: int = Field(..., ge=1)
    created_at: datetime
    level: str
    message: str
