"""Report registry.

Readers flag comments; moderators resolve or dismiss the reports. The
registry never writes to a comment. Resolutions that change a comment's
status go back through the comment service, which owns the lifecycle.
"""

from collections import Counter
from datetime import UTC, datetime
from typing import Protocol
from uuid import UUID

import structlog

from blog_comments.auth.permissions import Actor, Permission
from blog_comments.comments.exceptions import (
    CommentNotFoundError,
    DuplicateReportError,
    InvalidStateError,
    InvalidTransitionError,
    PermissionDeniedError,
    ReportNotFoundError,
    ValidationError,
)
from blog_comments.comments.models import Comment, ModerationAction
from blog_comments.comments.repository import CommentRepository
from blog_comments.comments.thread import Pagination, paginate

from .models import (
    CommentReport,
    Reporter,
    ReportPriority,
    ReportReason,
    ReportStatus,
    Resolution,
    ResolutionAction,
    compute_priority,
    create_report,
)
from .repository import ReportRepository, normalize_email


logger = structlog.get_logger(__name__)

DEFAULT_DISMISS_NOTES = "Reporte descartado sin acción"

# Resolution actions that change the reported comment's status
RESOLUTION_TRANSITIONS: dict[ResolutionAction, ModerationAction] = {
    ResolutionAction.COMMENT_REMOVED: ModerationAction.SPAM,
    ResolutionAction.COMMENT_APPROVED: ModerationAction.APPROVE,
}


class CommentTransitions(Protocol):
    """The slice of the comment service a resolution may call back into."""

    async def moderate(
        self,
        comment_id: UUID,
        action: ModerationAction,
        actor: Actor,
        notes: str | None = None,
        reason: str | None = None,
    ) -> Comment: ...


class ReportRegistry:
    """Deduplicated abuse reports with a resolution workflow."""

    def __init__(
        self,
        reports: ReportRepository,
        comments: CommentRepository,
        transitions: CommentTransitions,
    ) -> None:
        self.reports = reports
        self.comments = comments
        self.transitions = transitions

    async def report(
        self,
        comment_id: UUID,
        reason: ReportReason | str,
        actor: Actor | None = None,
        email: str | None = None,
        description: str | None = None,
        ip_address: str | None = None,
    ) -> CommentReport:
        """File a report against a comment.

        Raises:
            ValidationError: Unknown reason, or no email for the reporter.
            CommentNotFoundError: The comment does not exist.
            DuplicateReportError: This email already reported the comment.
        """
        try:
            reason = ReportReason(reason)
        except ValueError as e:
            msg = f"Motivo de reporte invalido: {reason}"
            raise ValidationError(msg) from e

        reporter_email = (actor.email if actor and actor.email else email) or ""
        if not reporter_email.strip():
            msg = (
                "Tu cuenta no tiene email; indica uno para reportar"
                if actor is not None
                else "El email es requerido para reportar como invitado"
            )
            raise ValidationError(msg)

        comment = await self.comments.get(comment_id)
        if comment is None:
            raise CommentNotFoundError

        open_reports = [
            r
            for r in await self.reports.list_by_comment(comment_id)
            if r.status == ReportStatus.PENDING
        ]

        report = create_report(
            comment_id=comment_id,
            post_id=comment.post_id,
            reporter=Reporter(
                email=normalize_email(reporter_email),
                user_id=actor.id if actor else None,
                ip_address=ip_address,
            ),
            reason=reason,
            priority=compute_priority(reason, len(open_reports)),
            description=description,
        )

        if not await self.reports.insert_if_absent(report):
            raise DuplicateReportError

        logger.info(
            "comment_reported",
            report_id=str(report.report_id),
            comment_id=str(comment_id),
            reason=reason.value,
            priority=report.priority.value,
        )
        return report

    async def resolve(
        self,
        report_id: UUID,
        action: ResolutionAction | str,
        actor: Actor,
        notes: str | None = None,
    ) -> CommentReport:
        """Close a pending report as resolved.

        ``comment_removed`` marks the comment as spam and ``comment_approved``
        approves it. A comment that no longer exists, or whose status cannot
        make that move (already rejected or hidden), does not block the
        resolution.
        """
        try:
            action = ResolutionAction(action)
        except ValueError as e:
            msg = f"Accion de resolucion invalida: {action}"
            raise ValidationError(msg) from e

        report = await self._pending_report(report_id, actor)

        transition = RESOLUTION_TRANSITIONS.get(action)
        if transition is not None:
            try:
                await self.transitions.moderate(
                    report.comment_id, transition, actor, notes=notes
                )
            except CommentNotFoundError:
                logger.warning(
                    "report_comment_missing",
                    report_id=str(report_id),
                    comment_id=str(report.comment_id),
                )
            except InvalidTransitionError as e:
                logger.warning(
                    "report_comment_transition_skipped",
                    report_id=str(report_id),
                    comment_id=str(report.comment_id),
                    reason=e.message,
                )

        return await self._close(report, ReportStatus.RESOLVED, action, actor, notes)

    async def dismiss(
        self, report_id: UUID, actor: Actor, notes: str | None = None
    ) -> CommentReport:
        """Close a pending report without acting on the comment."""
        report = await self._pending_report(report_id, actor)
        return await self._close(
            report,
            ReportStatus.DISMISSED,
            ResolutionAction.REPORT_DISMISSED,
            actor,
            notes or DEFAULT_DISMISS_NOTES,
        )

    async def _pending_report(self, report_id: UUID, actor: Actor) -> CommentReport:
        if not actor.has(Permission.RESOLVE_REPORTS):
            raise PermissionDeniedError
        report = await self.reports.get(report_id)
        if report is None:
            raise ReportNotFoundError
        if report.status != ReportStatus.PENDING:
            msg = "El reporte ya fue procesado"
            raise InvalidStateError(msg)
        return report

    async def _close(
        self,
        report: CommentReport,
        status: ReportStatus,
        action: ResolutionAction,
        actor: Actor,
        notes: str | None,
    ) -> CommentReport:
        resolution = Resolution(
            action=action,
            notes=notes,
            resolved_by=actor.id,
            resolved_at=datetime.now(UTC),
        )
        if not await self.reports.close(report, status, resolution):
            msg = "El reporte ya fue procesado"
            raise InvalidStateError(msg)

        report.status = status
        report.resolution = resolution
        logger.info(
            "report_closed",
            report_id=str(report.report_id),
            status=status.value,
            action=action.value,
            resolved_by=actor.id,
        )
        return report

    async def list_reports(
        self,
        status: ReportStatus = ReportStatus.PENDING,
        reason: ReportReason | None = None,
        priority: ReportPriority | None = None,
        page: int = 1,
        limit: int = 20,
    ) -> tuple[list[CommentReport], Pagination]:
        """Reports in a status, most urgent first, then newest first."""
        reports = [
            r
            for r in await self.reports.list_by_status(status)
            if (reason is None or r.reason == reason)
            and (priority is None or r.priority == priority)
        ]
        reports.sort(key=lambda r: r.created_at, reverse=True)
        reports.sort(key=lambda r: r.priority.rank, reverse=True)
        return paginate(reports, page, limit)

    async def report_stats(self) -> dict:
        """Counts per status plus the pending breakdown by reason and priority."""
        by_status = {
            status.value: await self.reports.list_by_status(status)
            for status in ReportStatus
        }
        pending = by_status[ReportStatus.PENDING.value]
        return {
            "total": sum(len(reports) for reports in by_status.values()),
            "by_status": {key: len(reports) for key, reports in by_status.items()},
            "pending_by_reason": dict(Counter(r.reason.value for r in pending)),
            "pending_by_priority": dict(Counter(r.priority.value for r in pending)),
        }

    async def reported_comment_ids(self) -> set[UUID]:
        """Comments that have at least one pending report."""
        pending = await self.reports.list_by_status(ReportStatus.PENDING)
        return {r.comment_id for r in pending}

    async def pending_count(self) -> int:
        return len(await self.reports.list_by_status(ReportStatus.PENDING))
