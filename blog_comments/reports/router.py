"""Comment report moderation endpoints.

Reports are created from the public comment routes; this router serves the
moderator side: the queue, statistics, resolution and dismissal.
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Query

from blog_comments.auth.dependencies import ReportResolverActor
from blog_comments.comments.dependencies import ReportRegistryDep, handle_comment_error
from blog_comments.comments.exceptions import CommentError
from blog_comments.comments.router import LimitQuery, PageQuery
from blog_comments.comments.schemas import PaginationResponse
from blog_comments.core.responses import ApiResponse

from .models import ReportPriority, ReportReason, ReportStatus
from .schemas import (
    DismissReportRequest,
    ReportListResponse,
    ReportResponse,
    ReportStatsResponse,
    ResolveReportRequest,
)


router = APIRouter(prefix="/admin/comments/reports", tags=["reports"])


@router.get(
    "",
    response_model=ApiResponse[ReportListResponse],
    summary="Report queue",
)
async def list_reports(
    report_registry: ReportRegistryDep,
    actor: ReportResolverActor,
    page: PageQuery = 1,
    limit: LimitQuery = 20,
    status_filter: Annotated[ReportStatus, Query(alias="status")] = ReportStatus.PENDING,
    reason: ReportReason | None = None,
    priority: ReportPriority | None = None,
) -> ApiResponse[ReportListResponse]:
    """Most urgent first, then newest first."""
    reports, pagination = await report_registry.list_reports(
        status=status_filter, reason=reason, priority=priority, page=page, limit=limit
    )
    return ApiResponse(
        data=ReportListResponse(
            items=[ReportResponse.from_report(r) for r in reports],
            pagination=PaginationResponse.from_pagination(pagination),
        )
    )


@router.get(
    "/stats",
    response_model=ApiResponse[ReportStatsResponse],
    summary="Report statistics",
)
async def report_stats(
    report_registry: ReportRegistryDep,
    actor: ReportResolverActor,
) -> ApiResponse[ReportStatsResponse]:
    stats = await report_registry.report_stats()
    return ApiResponse(data=ReportStatsResponse(**stats))


@router.post(
    "/{report_id}/resolve",
    response_model=ApiResponse[ReportResponse],
    summary="Resolve report",
)
async def resolve_report(
    report_id: UUID,
    data: ResolveReportRequest,
    report_registry: ReportRegistryDep,
    actor: ReportResolverActor,
) -> ApiResponse[ReportResponse]:
    """Resolve a pending report.

    ``comment_removed`` marks the comment as spam and ``comment_approved``
    approves it; other actions only close the report.
    """
    try:
        report = await report_registry.resolve(
            report_id, data.action, actor, data.notes
        )
    except CommentError as e:
        raise handle_comment_error(e) from e
    return ApiResponse(
        message="Reporte resuelto", data=ReportResponse.from_report(report)
    )


@router.post(
    "/{report_id}/dismiss",
    response_model=ApiResponse[ReportResponse],
    summary="Dismiss report",
)
async def dismiss_report(
    report_id: UUID,
    report_registry: ReportRegistryDep,
    actor: ReportResolverActor,
    data: DismissReportRequest | None = None,
) -> ApiResponse[ReportResponse]:
    try:
        report = await report_registry.dismiss(
            report_id, actor, data.notes if data else None
        )
    except CommentError as e:
        raise handle_comment_error(e) from e
    return ApiResponse(
        message="Reporte descartado", data=ReportResponse.from_report(report)
    )
