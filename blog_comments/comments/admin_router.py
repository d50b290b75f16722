"""Comment moderation API endpoints.

Moderator-only routes for:
- The pending queue (reported comments first) and statistics
- Single and bulk transitions (approve, reject, spam)
- Re-running automatic moderation over pending comments
"""

from typing import Any
from uuid import UUID

from fastapi import APIRouter

from blog_comments.auth.dependencies import ModeratorActor
from blog_comments.core.responses import ApiResponse

from .dependencies import CommentServiceDep, ReportRegistryDep, handle_comment_error
from .exceptions import CommentError
from .models import ModerationAction
from .router import LimitQuery, PageQuery
from .schemas import (
    BulkModerationRequest,
    ModeratedCommentResponse,
    ModerateCommentRequest,
    ModerationQueueResponse,
    PaginationResponse,
    ReanalysisResponse,
    ReanalyzeRequest,
)


router = APIRouter(prefix="/admin/comments", tags=["comments-admin"])


# ==============================================================================
# Queue and statistics
# ==============================================================================


@router.get(
    "/moderation/queue",
    response_model=ApiResponse[ModerationQueueResponse],
    summary="Pending moderation queue",
)
async def moderation_queue(
    comment_service: CommentServiceDep,
    report_registry: ReportRegistryDep,
    actor: ModeratorActor,
    page: PageQuery = 1,
    limit: LimitQuery = 20,
    sort_by: str = "created_at",
    sort_order: str = "asc",
) -> ApiResponse[ModerationQueueResponse]:
    """Pending comments, those with open reports first, oldest first."""
    try:
        items, pagination = await comment_service.moderation_queue(
            actor,
            page=page,
            limit=limit,
            sort_by=sort_by,
            sort_order=sort_order,
            prioritized=await report_registry.reported_comment_ids(),
        )
    except CommentError as e:
        raise handle_comment_error(e) from e

    return ApiResponse(
        data=ModerationQueueResponse(
            items=[ModeratedCommentResponse.from_comment(c) for c in items],
            pagination=PaginationResponse.from_pagination(pagination),
        )
    )


@router.get(
    "/stats",
    response_model=ApiResponse[dict],
    summary="Moderation statistics",
)
async def moderation_stats(
    comment_service: CommentServiceDep,
    report_registry: ReportRegistryDep,
    actor: ModeratorActor,
) -> ApiResponse[dict]:
    try:
        stats = await comment_service.moderation_stats(
            actor, pending_reports=await report_registry.pending_count()
        )
    except CommentError as e:
        raise handle_comment_error(e) from e
    return ApiResponse(data=stats)


@router.post(
    "/reanalyze",
    response_model=ApiResponse[ReanalysisResponse],
    summary="Re-run automatic moderation on pending comments",
)
async def reanalyze(
    comment_service: CommentServiceDep,
    actor: ModeratorActor,
    data: ReanalyzeRequest | None = None,
) -> ApiResponse[ReanalysisResponse]:
    try:
        result = await comment_service.reanalyze(actor, data.limit if data else None)
    except CommentError as e:
        raise handle_comment_error(e) from e
    return ApiResponse(
        message=f"{result.processed} comentarios analizados",
        data=ReanalysisResponse(**result.to_dict()),
    )


# ==============================================================================
# Transitions
# ==============================================================================


async def _moderate(
    comment_service: CommentServiceDep,
    comment_id: UUID,
    action: ModerationAction,
    actor: ModeratorActor,
    data: ModerateCommentRequest | None,
) -> ModeratedCommentResponse:
    try:
        comment = await comment_service.moderate(
            comment_id,
            action,
            actor,
            notes=data.notes if data else None,
            reason=data.reason if data else None,
        )
    except CommentError as e:
        raise handle_comment_error(e) from e
    return ModeratedCommentResponse.from_comment(comment)


async def _bulk(
    comment_service: CommentServiceDep,
    data: BulkModerationRequest,
    action: ModerationAction,
    actor: ModeratorActor,
) -> dict[str, Any]:
    try:
        result = await comment_service.bulk_moderate(
            data.comment_ids, action, actor, notes=data.notes, reason=data.reason
        )
    except CommentError as e:
        raise handle_comment_error(e) from e
    return result.to_dict()


@router.post(
    "/bulk-approve",
    response_model=ApiResponse[dict],
    summary="Approve several comments",
)
async def bulk_approve(
    data: BulkModerationRequest,
    comment_service: CommentServiceDep,
    actor: ModeratorActor,
) -> ApiResponse[dict]:
    result = await _bulk(comment_service, data, ModerationAction.APPROVE, actor)
    return ApiResponse(data=result)


@router.post(
    "/bulk-reject",
    response_model=ApiResponse[dict],
    summary="Reject several comments",
)
async def bulk_reject(
    data: BulkModerationRequest,
    comment_service: CommentServiceDep,
    actor: ModeratorActor,
) -> ApiResponse[dict]:
    result = await _bulk(comment_service, data, ModerationAction.REJECT, actor)
    return ApiResponse(data=result)


@router.post(
    "/bulk-spam",
    response_model=ApiResponse[dict],
    summary="Mark several comments as spam",
)
async def bulk_spam(
    data: BulkModerationRequest,
    comment_service: CommentServiceDep,
    actor: ModeratorActor,
) -> ApiResponse[dict]:
    result = await _bulk(comment_service, data, ModerationAction.SPAM, actor)
    return ApiResponse(data=result)


@router.post(
    "/{comment_id}/approve",
    response_model=ApiResponse[ModeratedCommentResponse],
    summary="Approve comment",
)
async def approve_comment(
    comment_id: UUID,
    comment_service: CommentServiceDep,
    actor: ModeratorActor,
    data: ModerateCommentRequest | None = None,
) -> ApiResponse[ModeratedCommentResponse]:
    comment = await _moderate(
        comment_service, comment_id, ModerationAction.APPROVE, actor, data
    )
    return ApiResponse(message="Comentario aprobado", data=comment)


@router.post(
    "/{comment_id}/reject",
    response_model=ApiResponse[ModeratedCommentResponse],
    summary="Reject comment",
)
async def reject_comment(
    comment_id: UUID,
    comment_service: CommentServiceDep,
    actor: ModeratorActor,
    data: ModerateCommentRequest | None = None,
) -> ApiResponse[ModeratedCommentResponse]:
    comment = await _moderate(
        comment_service, comment_id, ModerationAction.REJECT, actor, data
    )
    return ApiResponse(message="Comentario rechazado", data=comment)


@router.post(
    "/{comment_id}/spam",
    response_model=ApiResponse[ModeratedCommentResponse],
    summary="Mark comment as spam",
)
async def spam_comment(
    comment_id: UUID,
    comment_service: CommentServiceDep,
    actor: ModeratorActor,
    data: ModerateCommentRequest | None = None,
) -> ApiResponse[ModeratedCommentResponse]:
    comment = await _moderate(
        comment_service, comment_id, ModerationAction.SPAM, actor, data
    )
    return ApiResponse(message="Comentario marcado como spam", data=comment)
