"""Database models for comment abuse reports.

Reports are keyed by (comment_id, reporter_email) so the uniqueness of a
reporter per comment is enforced by the primary key itself: the insert is a
lightweight transaction (IF NOT EXISTS) and the dedup check cannot race.
"""

import json
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import UUID, uuid4


class ReportReason(str, Enum):
    """Reasons for reporting a comment."""

    SPAM = "spam"
    OFFENSIVE = "offensive"
    INAPPROPRIATE = "inappropriate"
    HARASSMENT = "harassment"
    MISINFORMATION = "misinformation"
    COPYRIGHT = "copyright"
    OTHER = "other"


class ReportStatus(str, Enum):
    """Report workflow status. Resolved and dismissed are terminal."""

    PENDING = "pending"
    RESOLVED = "resolved"
    DISMISSED = "dismissed"


class ReportPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _PRIORITY_RANK[self]


_PRIORITY_RANK = {
    ReportPriority.LOW: 0,
    ReportPriority.MEDIUM: 1,
    ReportPriority.HIGH: 2,
    ReportPriority.CRITICAL: 3,
}


class ResolutionAction(str, Enum):
    """What the moderator did about a report."""

    COMMENT_REMOVED = "comment_removed"
    COMMENT_EDITED = "comment_edited"
    COMMENT_APPROVED = "comment_approved"
    REPORT_DISMISSED = "report_dismissed"
    USER_WARNED = "user_warned"
    USER_BANNED = "user_banned"


def compute_priority(reason: ReportReason, prior_pending_reports: int) -> ReportPriority:
    """Priority grows with the number of open reports and the reason's gravity."""
    if prior_pending_reports >= 5 or reason == ReportReason.HARASSMENT:
        return ReportPriority.CRITICAL
    if prior_pending_reports >= 3 or reason in (
        ReportReason.OFFENSIVE,
        ReportReason.MISINFORMATION,
    ):
        return ReportPriority.HIGH
    if prior_pending_reports >= 1 or reason == ReportReason.SPAM:
        return ReportPriority.MEDIUM
    return ReportPriority.LOW


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

REPORT_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.comment_reports (
    comment_id UUID,
    reporter_email TEXT,
    report_id UUID,
    post_id UUID,
    reporter_user_id TEXT,
    reporter_ip TEXT,
    reason TEXT,
    description TEXT,
    status TEXT,
    priority TEXT,
    resolution TEXT,
    created_at TIMESTAMP,
    PRIMARY KEY ((comment_id), reporter_email)
)
"""

REPORT_ID_INDEX_CQL = """
CREATE INDEX IF NOT EXISTS comment_reports_id_idx
ON {keyspace}.comment_reports (report_id)
"""

REPORT_STATUS_INDEX_CQL = """
CREATE INDEX IF NOT EXISTS comment_reports_status_idx
ON {keyspace}.comment_reports (status)
"""

REPORTS_TABLES_CQL = [
    REPORT_TABLE_CQL,
    REPORT_ID_INDEX_CQL,
    REPORT_STATUS_INDEX_CQL,
]


# ==============================================================================
# Entity Classes
# ==============================================================================


@dataclass
class Reporter:
    email: str
    user_id: str | None = None
    ip_address: str | None = None


@dataclass
class Resolution:
    action: ResolutionAction
    notes: str | None
    resolved_by: str
    resolved_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "action": self.action.value,
            "notes": self.notes,
            "resolved_by": self.resolved_by,
            "resolved_at": self.resolved_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Resolution":
        return cls(
            action=ResolutionAction(data["action"]),
            notes=data.get("notes"),
            resolved_by=data.get("resolved_by", ""),
            resolved_at=datetime.fromisoformat(data["resolved_at"]),
        )


@dataclass
class CommentReport:
    """Report of a comment for moderation."""

    report_id: UUID
    comment_id: UUID
    post_id: UUID
    reporter: Reporter
    reason: ReportReason
    description: str | None
    status: ReportStatus
    priority: ReportPriority
    resolution: Resolution | None
    created_at: datetime

    @classmethod
    def from_row(cls, row: Any) -> "CommentReport":
        """Create CommentReport from Cassandra row."""
        return cls(
            report_id=row.report_id,
            comment_id=row.comment_id,
            post_id=row.post_id,
            reporter=Reporter(
                email=row.reporter_email,
                user_id=row.reporter_user_id,
                ip_address=row.reporter_ip,
            ),
            reason=ReportReason(row.reason),
            description=row.description,
            status=ReportStatus(row.status),
            priority=ReportPriority(row.priority or ReportPriority.LOW.value),
            resolution=(
                Resolution.from_dict(json.loads(row.resolution))
                if row.resolution
                else None
            ),
            created_at=row.created_at,
        )


def create_report(
    comment_id: UUID,
    post_id: UUID,
    reporter: Reporter,
    reason: ReportReason,
    priority: ReportPriority,
    description: str | None = None,
) -> CommentReport:
    """Create a new pending report."""
    return CommentReport(
        report_id=uuid4(),
        comment_id=comment_id,
        post_id=post_id,
        reporter=reporter,
        reason=reason,
        description=description,
        status=ReportStatus.PENDING,
        priority=priority,
        resolution=None,
        created_at=datetime.now(UTC),
    )
