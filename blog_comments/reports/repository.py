# ruff: noqa: S608 - All CQL queries use keyspace from config, not user input
"""Report persistence.

``insert_if_absent`` is the dedup point: a second report for the same
(comment, reporter email) is rejected by the store, never by a prior read.
``close`` moves a report out of ``pending`` only if it is still pending.
"""

import asyncio
import copy
import json
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING
from uuid import UUID

from blog_comments.core.database import was_applied

from .models import CommentReport, Resolution, ReportStatus


if TYPE_CHECKING:
    from cassandra.cluster import Session


def normalize_email(email: str) -> str:
    return email.strip().lower()


class ReportRepository(ABC):
    @abstractmethod
    async def insert_if_absent(self, report: CommentReport) -> bool:
        """Store a report unless the reporter already reported the comment.

        Returns:
            True if stored, False on a duplicate.
        """

    @abstractmethod
    async def get(self, report_id: UUID) -> CommentReport | None: ...

    @abstractmethod
    async def close(
        self, report: CommentReport, status: ReportStatus, resolution: Resolution
    ) -> bool:
        """Set the terminal status if the report is still pending.

        Returns:
            True if this call closed the report.
        """

    @abstractmethod
    async def list_by_status(self, status: ReportStatus) -> list[CommentReport]: ...

    @abstractmethod
    async def list_by_comment(self, comment_id: UUID) -> list[CommentReport]: ...


# ==============================================================================
# In-memory backend
# ==============================================================================


class InMemoryReportRepository(ReportRepository):
    def __init__(self) -> None:
        self._reports: dict[tuple[UUID, str], CommentReport] = {}
        self._lock = asyncio.Lock()

    async def insert_if_absent(self, report: CommentReport) -> bool:
        key = (report.comment_id, normalize_email(report.reporter.email))
        async with self._lock:
            if key in self._reports:
                return False
            self._reports[key] = copy.deepcopy(report)
            return True

    def _find(self, report_id: UUID) -> CommentReport | None:
        for report in self._reports.values():
            if report.report_id == report_id:
                return report
        return None

    async def get(self, report_id: UUID) -> CommentReport | None:
        report = self._find(report_id)
        return copy.deepcopy(report) if report else None

    async def close(
        self, report: CommentReport, status: ReportStatus, resolution: Resolution
    ) -> bool:
        async with self._lock:
            stored = self._find(report.report_id)
            if stored is None or stored.status != ReportStatus.PENDING:
                return False
            stored.status = status
            stored.resolution = copy.deepcopy(resolution)
            return True

    async def list_by_status(self, status: ReportStatus) -> list[CommentReport]:
        return [copy.deepcopy(r) for r in self._reports.values() if r.status == status]

    async def list_by_comment(self, comment_id: UUID) -> list[CommentReport]:
        return [
            copy.deepcopy(r) for r in self._reports.values() if r.comment_id == comment_id
        ]


# ==============================================================================
# Cassandra backend
# ==============================================================================


class CassandraReportRepository(ReportRepository):
    """Repository over the ``comment_reports`` table."""

    def __init__(self, session: "Session", keyspace: str):
        """Initialize with Cassandra session."""
        self.session = session
        self.keyspace = keyspace
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements for efficient queries."""
        self._insert_report = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.comment_reports
            (comment_id, reporter_email, report_id, post_id, reporter_user_id,
             reporter_ip, reason, description, status, priority, resolution, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            IF NOT EXISTS
        """)

        self._get_by_id = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.comment_reports WHERE report_id = ?
        """)

        self._close_report = self.session.prepare(f"""
            UPDATE {self.keyspace}.comment_reports
            SET status = ?, resolution = ?
            WHERE comment_id = ? AND reporter_email = ?
            IF status = 'pending'
        """)

        self._get_by_status = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.comment_reports WHERE status = ?
        """)

        self._get_by_comment = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.comment_reports WHERE comment_id = ?
        """)

    async def insert_if_absent(self, report: CommentReport) -> bool:
        result = await self.session.aexecute(
            self._insert_report,
            [
                report.comment_id,
                normalize_email(report.reporter.email),
                report.report_id,
                report.post_id,
                report.reporter.user_id,
                report.reporter.ip_address,
                report.reason.value,
                report.description,
                report.status.value,
                report.priority.value,
                None,
                report.created_at,
            ],
        )
        return was_applied(result)

    async def get(self, report_id: UUID) -> CommentReport | None:
        result = await self.session.aexecute(self._get_by_id, [report_id])
        row = result[0] if result else None
        return CommentReport.from_row(row) if row else None

    async def close(
        self, report: CommentReport, status: ReportStatus, resolution: Resolution
    ) -> bool:
        result = await self.session.aexecute(
            self._close_report,
            [
                status.value,
                json.dumps(resolution.to_dict()),
                report.comment_id,
                normalize_email(report.reporter.email),
            ],
        )
        return was_applied(result)

    async def list_by_status(self, status: ReportStatus) -> list[CommentReport]:
        rows = await self.session.aexecute(self._get_by_status, [status.value])
        return [CommentReport.from_row(row) for row in rows]

    async def list_by_comment(self, comment_id: UUID) -> list[CommentReport]:
        rows = await self.session.aexecute(self._get_by_comment, [comment_id])
        return [CommentReport.from_row(row) for row in rows]
