"""Comment system public API endpoints.

Provides routes for:
- Threaded listing and statistics of a post's comments
- Comment creation (registered users and guests), edition and deletion
- Voting and abuse reports
- Pinning (moderators)
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Query, Request, status

from blog_comments.auth.dependencies import (
    ClientInfo,
    CurrentActor,
    ModeratorActor,
    OptionalActor,
)
from blog_comments.auth.permissions import Actor
from blog_comments.config import get_settings
from blog_comments.core.responses import ApiResponse
from blog_comments.reports.schemas import CreateReportRequest, ReportResponse

from .dependencies import CommentServiceDep, ReportRegistryDep, handle_comment_error
from .exceptions import CommentError, ValidationError
from .models import CommentMetadata, CommentStatus, Votes
from .schemas import (
    CommentListResponse,
    CommentResponse,
    CreateCommentRequest,
    DeleteCommentResponse,
    PaginationResponse,
    ThreadCommentResponse,
    ThreadListResponse,
    UpdateCommentRequest,
    VoteRequest,
    VotesResponse,
)
from .service import GuestInput


router = APIRouter(tags=["comments"])

MAX_PAGE_SIZE = get_settings().comments_page_size_max

PageQuery = Annotated[int, Query(ge=1)]
LimitQuery = Annotated[int, Query(ge=1, le=MAX_PAGE_SIZE)]


def _voter_key(actor: Actor | None, client_ip: str | None) -> str:
    if actor is not None:
        return actor.id
    if not client_ip:
        msg = "No se pudo identificar al votante"
        raise ValidationError(msg)
    return client_ip


def _votes_response(votes: Votes) -> VotesResponse:
    return VotesResponse(likes=votes.likes, dislikes=votes.dislikes, score=votes.score)


# ==============================================================================
# Post threads
# ==============================================================================


@router.get(
    "/blog/{slug}/comments",
    response_model=ApiResponse[ThreadListResponse],
    summary="List approved comment threads of a post",
)
async def list_post_comments(
    slug: str,
    comment_service: CommentServiceDep,
    page: PageQuery = 1,
    limit: LimitQuery = 20,
    sort_by: str = "created_at",
    sort_order: str = "desc",
) -> ApiResponse[ThreadListResponse]:
    """Root comments are paginated; replies are nested oldest first."""
    try:
        thread = await comment_service.list_post_comments(
            slug, page=page, limit=limit, sort_by=sort_by, sort_order=sort_order
        )
    except CommentError as e:
        raise handle_comment_error(e) from e

    return ApiResponse(
        data=ThreadListResponse(
            items=[ThreadCommentResponse.from_node(node) for node in thread.items],
            pagination=PaginationResponse.from_pagination(thread.pagination),
        )
    )


@router.get(
    "/blog/{slug}/comments/stats",
    response_model=ApiResponse[dict],
    summary="Comment counts of a post",
)
async def post_comment_stats(
    slug: str, comment_service: CommentServiceDep
) -> ApiResponse[dict]:
    try:
        stats = await comment_service.post_stats(slug)
    except CommentError as e:
        raise handle_comment_error(e) from e
    return ApiResponse(data=stats)


@router.post(
    "/blog/{slug}/comments",
    response_model=ApiResponse[CommentResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Create comment",
)
async def create_comment(
    slug: str,
    data: CreateCommentRequest,
    request: Request,
    comment_service: CommentServiceDep,
    actor: OptionalActor,
    client: ClientInfo,
) -> ApiResponse[CommentResponse]:
    """Create a comment or a reply.

    The initial status comes from automatic moderation: ``approved``,
    ``pending`` (awaits a moderator) or ``spam``.
    """
    user_agent, ip_address = client
    try:
        comment = await comment_service.create_comment(
            post_slug=slug,
            content=data.content,
            actor=actor,
            parent_id=data.parent_id,
            guest=GuestInput(
                name=data.author_name,
                email=str(data.author_email) if data.author_email else None,
                website=data.author_website,
            ),
            metadata=CommentMetadata(
                ip_address=ip_address,
                user_agent=user_agent,
                referrer=request.headers.get("referer"),
            ),
        )
    except CommentError as e:
        raise handle_comment_error(e) from e

    message = (
        "Comentario publicado"
        if comment.status == CommentStatus.APPROVED
        else "Comentario enviado, pendiente de moderacion"
    )
    return ApiResponse(message=message, data=CommentResponse.from_comment(comment))


# ==============================================================================
# Single comment
# ==============================================================================


@router.get(
    "/comments/mine",
    response_model=ApiResponse[CommentListResponse],
    summary="List my comments",
)
async def my_comments(
    comment_service: CommentServiceDep,
    actor: CurrentActor,
    page: PageQuery = 1,
    limit: LimitQuery = 20,
    status_filter: Annotated[CommentStatus | None, Query(alias="status")] = None,
) -> ApiResponse[CommentListResponse]:
    items, pagination = await comment_service.user_comments(
        actor, page=page, limit=limit, status=status_filter
    )
    return ApiResponse(
        data=CommentListResponse(
            items=[CommentResponse.from_comment(c) for c in items],
            pagination=PaginationResponse.from_pagination(pagination),
        )
    )


@router.get(
    "/comments/{comment_id}",
    response_model=ApiResponse[ThreadCommentResponse],
    summary="Get comment with its replies",
)
async def get_comment(
    comment_id: UUID,
    comment_service: CommentServiceDep,
    actor: OptionalActor,
) -> ApiResponse[ThreadCommentResponse]:
    try:
        node = await comment_service.get_comment(comment_id, actor)
    except CommentError as e:
        raise handle_comment_error(e) from e
    return ApiResponse(data=ThreadCommentResponse.from_node(node))


@router.put(
    "/comments/{comment_id}",
    response_model=ApiResponse[CommentResponse],
    summary="Edit comment",
)
async def edit_comment(
    comment_id: UUID,
    data: UpdateCommentRequest,
    comment_service: CommentServiceDep,
    actor: CurrentActor,
) -> ApiResponse[CommentResponse]:
    """Authors and moderators may edit. The previous content is kept."""
    try:
        comment = await comment_service.edit_comment(comment_id, data.content, actor)
    except CommentError as e:
        raise handle_comment_error(e) from e
    return ApiResponse(
        message="Comentario actualizado", data=CommentResponse.from_comment(comment)
    )


@router.delete(
    "/comments/{comment_id}",
    response_model=ApiResponse[DeleteCommentResponse],
    summary="Delete comment",
)
async def delete_comment(
    comment_id: UUID,
    comment_service: CommentServiceDep,
    actor: CurrentActor,
) -> ApiResponse[DeleteCommentResponse]:
    """Comments with replies are hidden and redacted; others are removed."""
    try:
        result = await comment_service.delete_comment(comment_id, actor)
    except CommentError as e:
        raise handle_comment_error(e) from e
    return ApiResponse(
        message="Comentario eliminado",
        data=DeleteCommentResponse(
            id=result.comment_id, deleted=result.hard_deleted, hidden=result.hidden
        ),
    )


# ==============================================================================
# Votes and reports
# ==============================================================================


@router.post(
    "/comments/{comment_id}/vote",
    response_model=ApiResponse[VotesResponse],
    summary="Like or dislike a comment",
)
async def vote_comment(
    comment_id: UUID,
    data: VoteRequest,
    comment_service: CommentServiceDep,
    actor: OptionalActor,
    client: ClientInfo,
) -> ApiResponse[VotesResponse]:
    """Guests vote by IP address. Repeating a vote changes nothing."""
    try:
        votes = await comment_service.vote(
            comment_id, _voter_key(actor, client[1]), data.type
        )
    except CommentError as e:
        raise handle_comment_error(e) from e
    return ApiResponse(data=_votes_response(votes))


@router.delete(
    "/comments/{comment_id}/vote",
    response_model=ApiResponse[VotesResponse],
    summary="Remove my vote",
)
async def remove_vote(
    comment_id: UUID,
    comment_service: CommentServiceDep,
    actor: OptionalActor,
    client: ClientInfo,
) -> ApiResponse[VotesResponse]:
    try:
        votes = await comment_service.remove_vote(
            comment_id, _voter_key(actor, client[1])
        )
    except CommentError as e:
        raise handle_comment_error(e) from e
    return ApiResponse(data=_votes_response(votes))


@router.post(
    "/comments/{comment_id}/report",
    response_model=ApiResponse[ReportResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Report comment",
)
async def report_comment(
    comment_id: UUID,
    data: CreateReportRequest,
    report_registry: ReportRegistryDep,
    actor: OptionalActor,
    client: ClientInfo,
) -> ApiResponse[ReportResponse]:
    """Each email may report a comment once."""
    try:
        report = await report_registry.report(
            comment_id,
            data.reason,
            actor=actor,
            email=str(data.email) if data.email else None,
            description=data.description,
            ip_address=client[1],
        )
    except CommentError as e:
        raise handle_comment_error(e) from e
    return ApiResponse(
        message="Reporte enviado", data=ReportResponse.from_report(report)
    )


# ==============================================================================
# Pinning
# ==============================================================================


@router.post(
    "/comments/{comment_id}/pin",
    response_model=ApiResponse[CommentResponse],
    summary="Pin comment",
)
async def pin_comment(
    comment_id: UUID,
    comment_service: CommentServiceDep,
    actor: ModeratorActor,
) -> ApiResponse[CommentResponse]:
    try:
        comment = await comment_service.pin(comment_id, actor)
    except CommentError as e:
        raise handle_comment_error(e) from e
    return ApiResponse(
        message="Comentario fijado", data=CommentResponse.from_comment(comment)
    )


@router.delete(
    "/comments/{comment_id}/pin",
    response_model=ApiResponse[CommentResponse],
    summary="Unpin comment",
)
async def unpin_comment(
    comment_id: UUID,
    comment_service: CommentServiceDep,
    actor: ModeratorActor,
) -> ApiResponse[CommentResponse]:
    try:
        comment = await comment_service.unpin(comment_id, actor)
    except CommentError as e:
        raise handle_comment_error(e) from e
    return ApiResponse(
        message="Comentario desfijado", data=CommentResponse.from_comment(comment)
    )
