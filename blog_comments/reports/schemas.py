"""Pydantic schemas for comment reports."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field

from blog_comments.comments.schemas import PaginationResponse

from .models import (
    CommentReport,
    ReportPriority,
    ReportReason,
    ReportStatus,
    ResolutionAction,
)


# ==============================================================================
# Request Schemas
# ==============================================================================


class CreateReportRequest(BaseModel):
    """Request to report a comment. Guests must include their email."""

    reason: ReportReason
    description: str | None = Field(None, max_length=1000)
    email: EmailStr | None = None


class ResolveReportRequest(BaseModel):
    action: ResolutionAction
    notes: str | None = Field(None, max_length=1000)


class DismissReportRequest(BaseModel):
    notes: str | None = Field(None, max_length=1000)


# ==============================================================================
# Response Schemas
# ==============================================================================


class ResolutionResponse(BaseModel):
    action: ResolutionAction
    notes: str | None = None
    resolved_by: str
    resolved_at: datetime


class ReportResponse(BaseModel):
    """Response for a comment report.

    The reporter's email and IP are never exposed.
    """

    id: UUID
    comment_id: UUID
    post_id: UUID
    reporter_user_id: str | None = None
    reason: ReportReason
    description: str | None = None
    status: ReportStatus
    priority: ReportPriority
    resolution: ResolutionResponse | None = None
    created_at: datetime

    @classmethod
    def from_report(cls, report: CommentReport) -> "ReportResponse":
        """Create response from CommentReport entity."""
        resolution = report.resolution
        return cls(
            id=report.report_id,
            comment_id=report.comment_id,
            post_id=report.post_id,
            reporter_user_id=report.reporter.user_id,
            reason=report.reason,
            description=report.description,
            status=report.status,
            priority=report.priority,
            resolution=(
                ResolutionResponse(
                    action=resolution.action,
                    notes=resolution.notes,
                    resolved_by=resolution.resolved_by,
                    resolved_at=resolution.resolved_at,
                )
                if resolution
                else None
            ),
            created_at=report.created_at,
        )


class ReportListResponse(BaseModel):
    """Paginated list of reports."""

    items: list[ReportResponse]
    pagination: PaginationResponse


class ReportStatsResponse(BaseModel):
    total: int
    by_status: dict[str, int]
    pending_by_reason: dict[str, int]
    pending_by_priority: dict[str, int]
