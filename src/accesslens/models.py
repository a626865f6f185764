"""AccessLens data models using Pydantic."""

from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional
from pydantic import BaseModel, Field, ConfigDict


MAX_ERROR_SAMPLES = 10

UNKNOWN = "UNKNOWN"


class LogRecord(BaseModel):
    """A single access-log row after field conversion."""

    timestamp: str = Field(..., description="Request timestamp as written in the log")
    client_ip: str = Field(..., description="Client IP address")
    http_method: str = Field(..., description="HTTP method")
    request_uri: str = Field(..., description="Request path without query string")
    user_agent: str = Field(..., description="User agent string")
    http_status: int = Field(..., description="HTTP response status code")
    http_version: str = Field(..., description="HTTP protocol version")
    received_bytes: int = Field(..., description="Bytes received from the client")
    sent_bytes: int = Field(..., description="Bytes sent to the client")
    client_response_time: float = Field(..., description="Response time seen by the client")
    ssl_protocol: str = Field(..., description="Negotiated SSL/TLS protocol")
    original_request_uri_with_args: str = Field(..., description="Request URI including query string")

    model_config = ConfigDict(frozen=True)


class ParseOutcome(BaseModel):
    """Counters and error samples collected while parsing one CSV file."""

    success_count: int = Field(0, description="Lines converted into a LogRecord")
    total_lines: int = Field(0, description="Non-blank data lines seen (header excluded)")
    error_count: int = Field(0, description="Lines that failed to parse")
    error_samples: List[str] = Field(
        default_factory=list,
        description=f"Raw text of the first {MAX_ERROR_SAMPLES} failed lines"
    )


class AnalysisStatus(str, Enum):
    """Lifecycle states of an analysis job."""

    QUEUED = "QUEUED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self in (AnalysisStatus.COMPLETED, AnalysisStatus.FAILED)


class AnalysisResult(BaseModel):
    """Aggregated statistics of a completed analysis."""

    analysis_id: str = Field(..., description="Id of the job that produced this result")
    analyzed_at: datetime = Field(default_factory=datetime.now, description="When the analysis finished")
    total_requests: int = Field(0, description="Number of successfully parsed records")
    status_code_counts: Dict[str, int] = Field(default_factory=dict, description="Count per status code")
    status_group_counts: Dict[str, int] = Field(default_factory=dict, description="Count per status group (2xx, 4xx, ...)")
    path_counts: Dict[str, int] = Field(default_factory=dict, description="Count per request path")
    ip_counts: Dict[str, int] = Field(default_factory=dict, description="Count per client IP")
    total_lines: int = Field(0, description="Non-blank data lines seen")
    error_count: int = Field(0, description="Lines that failed to parse")
    error_samples: List[str] = Field(default_factory=list, description="Raw text of sampled failed lines")

    model_config = ConfigDict(frozen=True)


class JobState(BaseModel):
    """Status, result and error of a job, published as one immutable value."""

    status: AnalysisStatus = Field(AnalysisStatus.QUEUED, description="Current job status")
    result: Optional[AnalysisResult] = Field(None, description="Present only when COMPLETED")
    error_message: Optional[str] = Field(None, description="Present only when FAILED")

    model_config = ConfigDict(frozen=True)


class GeoInfo(BaseModel):
    """Geolocation of an IP address as returned by the lookup service."""

    country: str = Field(..., description="Country code")
    region: str = Field(..., description="Region or state")
    city: str = Field(..., description="City")
    org: str = Field(..., description="Owning organization / ASN")

    model_config = ConfigDict(frozen=True)

    @classmethod
    def unknown(cls) -> "GeoInfo":
        """Placeholder returned when a lookup cannot be completed."""
        return cls(country=UNKNOWN, region=UNKNOWN, city=UNKNOWN, org=UNKNOWN)

    @property
    def is_unknown(self) -> bool:
        return self == GeoInfo.unknown()


class FileMetadata(BaseModel):
    """Metadata about an ingested log file."""

    file_path: Path = Field(..., description="Path to the log file")
    file_size: int = Field(..., description="File size in bytes")
    encoding: str = Field(default="utf-8", description="Encoding used to decode the file")
    ingestion_start: datetime = Field(default_factory=datetime.now, description="When ingestion started")
    ingestion_end: Optional[datetime] = Field(None, description="When ingestion completed")

    @property
    def duration_seconds(self) -> Optional[float]:
        """Calculate ingestion duration in seconds."""
        if self.ingestion_end and self.ingestion_start:
            return (self.ingestion_end - self.ingestion_start).total_seconds()
        return None
