"""Abuse reports on comments.

Note: the registry and router are not exported here to avoid circular
imports with the database bootstrap. Import them from their modules.
"""

from .models import (
    REPORTS_TABLES_CQL,
    CommentReport,
    ReportPriority,
    ReportReason,
    ReportStatus,
    ResolutionAction,
)


__all__ = [
    "REPORTS_TABLES_CQL",
    "CommentReport",
    "ReportPriority",
    "ReportReason",
    "ReportStatus",
    "ResolutionAction",
]
