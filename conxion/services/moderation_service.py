"""Moderation Service — user reports and admin actions on reports and events.

Invariants:
    - Admin-ness is a row in `admins`; nothing else grants it
    - Every admin action writes exactly one moderation_logs row in the same
      transaction as the change it records
    - create_report flushes but does not commit: callers (connection action,
      event report) commit alongside their own writes
"""

import logging
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from conxion.core.domain_types import ReportStatus
from conxion.core.enforce_moderation import (
    REPORT_ACTIONS, check_event_moderation, check_report,
    check_report_moderation, event_log_metadata, event_snapshot,
    plan_event_moderation, resolve_report_target,
)
from conxion.core.errors import RuleViolationError
from conxion.core.time_windows import utc_now
from conxion.models.admin import Admin
from conxion.models.connection import Connection
from conxion.models.event import Event
from conxion.models.moderation_log import ModerationLog
from conxion.models.report import Report

logger = logging.getLogger(__name__)


class ModerationService:

    def __init__(self, db: AsyncSession):
        self.db = db

    async def is_app_admin(self, user_id: UUID) -> bool:
        found = await self.db.scalar(select(Admin.user_id).where(Admin.user_id == user_id))
        return found is not None

    # ─── Reports ─────────────────────────────────────────────────

    async def create_report(
        self,
        me: UUID,
        reason: str | None,
        connection_id: UUID | None = None,
        target_user_id: UUID | None = None,
        context: str | None = None,
        context_id: str | None = None,
        note: str | None = None,
    ) -> Report:
        connection = (
            await self.db.get(Connection, connection_id) if connection_id else None
        )
        error = check_report(me, reason, connection, connection_id, target_user_id)
        if error:
            raise RuleViolationError.from_rule(error)

        report = Report(
            reporter_id=me,
            target_user_id=resolve_report_target(me, connection, target_user_id),
            context=(context or "").strip() or "connection",
            context_id=(context_id or "").strip() or (
                str(connection_id) if connection_id else None
            ),
            reason=reason.strip(),
            note=(note or "").strip() or None,
            status=ReportStatus.OPEN.value,
        )
        self.db.add(report)
        await self.db.flush()
        logger.info(
            f"Report {report.id} opened ({report.context})",
            extra={"user_id": str(me)},
        )
        return report

    async def list_reports(self, me: UUID, status: str | None = None) -> list[Report]:
        if not await self.is_app_admin(me):
            raise RuleViolationError("not_authorized", http_status=403)
        query = select(Report).order_by(Report.created_at.desc())
        if status:
            query = query.where(Report.status == status)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def moderate_report(
        self, me: UUID, report_id: UUID, action: str, note: str | None,
    ) -> UUID:
        report = await self.db.get(Report, report_id) if report_id else None
        error = check_report_moderation(await self.is_app_admin(me), action, report)
        if error:
            raise RuleViolationError.from_rule(error)

        from_status = report.status
        report.status = REPORT_ACTIONS[action]
        report.updated_at = utc_now()
        log = ModerationLog(
            report_id=report.id,
            actor_id=me,
            target_user_id=report.target_user_id,
            action=action,
            reason=report.reason,
            note=(note or "").strip() or None,
            metadata_={"from_status": from_status},
        )
        self.db.add(log)
        await self.db.commit()
        logger.info(f"Report {report.id} {from_status} → {report.status}", extra={"user_id": str(me)})
        return log.id

    # ─── Events ──────────────────────────────────────────────────

    async def moderate_event(
        self,
        me: UUID,
        event_id: UUID,
        action: str,
        note: str | None,
        hidden_reason: str | None,
    ) -> UUID:
        event = await self.db.get(Event, event_id) if event_id else None
        error = check_event_moderation(await self.is_app_admin(me), action, event)
        if error:
            raise RuleViolationError.from_rule(error)

        now = utc_now()
        before = event_snapshot(event)
        for column, value in plan_event_moderation(action, me, note, hidden_reason, now).items():
            setattr(event, column, value)
        event.updated_at = now
        after = event_snapshot(event)

        log = ModerationLog(
            actor_id=me,
            target_user_id=event.host_user_id,
            action=f"event_{action}",
            note=(note or "").strip() or None,
            metadata_=event_log_metadata(event.id, before, after),
        )
        self.db.add(log)
        await self.db.commit()
        logger.info(f"Event {event.id} moderated: {action}", extra={"user_id": str(me)})
        return log.id
