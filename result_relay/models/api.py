"""Pydantic models for ingestion API responses."""

from collections.abc import Mapping

from pydantic import BaseModel, ConfigDict, Field


class ReportSummary(BaseModel):
    """Counts by outcome acknowledged by the API."""

    model_config = ConfigDict(populate_by_name=True)

    run_id: str | None = Field(default=None, alias="runId")
    tests_received: int = Field(default=0, alias="testsReceived")
    passed: int = 0
    failed: int = 0
    skipped: int = 0


class ReportResponse(BaseModel):
    """Response from POST /reports."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool
    message: str = ""
    summary: ReportSummary = Field(default_factory=ReportSummary)
    upload_urls: Mapping[str, str] = Field(default_factory=dict, alias="uploadUrls")


class ConfirmUploadsResponse(BaseModel):
    """Response from POST /reports/confirm-uploads."""

    success: bool
    confirmed: int = 0
