from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Optional
from enum import Enum


class IndexStatus(str, Enum):
    RUNNING = "running"
    STOPPED = "stopped"


class Index(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str = Field(..., description="Index (recording) identifier")
    identity_id: str = Field(..., description="Identity owning the index")
    status: str = Field(..., description="Index status, e.g. running or stopped")
    start: int = Field(..., description="Start time in epoch seconds")
    end: Optional[int] = Field(None, description="Stop time in epoch seconds, absent while running")
    volume: int = Field(0, description="Interactions recorded over the index lifetime", ge=0)
    name: str = Field("", description="Display name of the index")
    identity_name: Optional[str] = Field(None, description="Identity label, attached after analysis")

    def qualifies(self, billing_start_time: int) -> bool:
        """True if the index recorded anything on or after ``billing_start_time``."""
        if self.status == IndexStatus.RUNNING:
            return self.end is None
        if self.status == IndexStatus.STOPPED:
            return self.end is not None and self.end > billing_start_time
        return False

    def started_within(self, billing_start_time: int) -> bool:
        return self.start >= billing_start_time


class Identity(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str = Field(..., description="Identity identifier")
    label: str = Field("", description="Human readable identity label")
    api_key: str = Field("", description="Identity-scoped API key")
    status: Optional[str] = Field(None, description="Identity status, e.g. active")


class AnalysisResult(BaseModel):
    interactions: int = Field(0, ge=0)
    unique_authors: int = Field(0, ge=0)
    redacted: bool = False

    @classmethod
    def from_response(cls, body: dict[str, Any]) -> "AnalysisResult":
        analysis = body.get("analysis") or {}
        return cls(
            interactions=body.get("interactions") or 0,
            unique_authors=body.get("unique_authors") or 0,
            redacted=bool(analysis.get("redacted", False)),
        )


class SubscriptionsPage(BaseModel):
    count: int
    page: int
    pages: int
    per_page: int
    subscriptions: list[dict[str, Any]]


class IdentitiesPage(BaseModel):
    count: int
    identities: list[dict[str, Any]]


class AnalyzeParameters(BaseModel):
    analysis_type: str = Field(..., description="Analysis type, e.g. timeSeries")
    parameters: dict[str, Any] = Field(default_factory=dict)


class AnalyzeRequest(BaseModel):
    parameters: AnalyzeParameters
    filter: str = ""
    start: Optional[int] = None
    end: Optional[int] = None
    id: str

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "parameters": {"analysis_type": "timeSeries", "parameters": {"interval": "day"}},
                "filter": "",
                "start": 1759302000,
                "end": None,
                "id": "a1b2c3d4e5f60718293a4b5c6d7e8f90"
            }
        }
    )


class AnalyzeResponse(BaseModel):
    interactions: int
    unique_authors: int
    analysis: dict[str, Any]
