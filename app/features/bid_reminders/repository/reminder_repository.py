"""
Postgres persistence for the bid reminder feature.

Implements the ReminderStore port on top of the shared psycopg pool
helpers. Every write is its own statement; nothing here opens a
transaction spanning more than one invitation.
"""

from datetime import datetime
from typing import Any

from psycopg import sql

from app.db.helpers import (
    DatabaseError,
    execute_query,
    execute_transaction,
    fetch_all,
    fetch_one,
    with_db_retry,
)
from app.features.bid_reminders.domain.models import (
    QUEUE_CANCELLED,
    QUEUE_PENDING,
    QUEUE_PROCESSING,
    BidInvitation,
    CadenceSettings,
    ReminderHistoryRecord,
    ReminderQueueEntry,
)
from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class ReminderRepositoryError(DatabaseError):
    """More specific exception for repository failures."""


class ReminderRepository:
    """Persistence helpers backing the reminder run."""

    INVITATION_COLUMNS = """
        b.id, b.status, b.reminder_count, b.reminders_paused,
        b.invitation_sent_at, b.last_reminder_at, b.next_reminder_at,
        b.subcontractor_id, s.company_name AS subcontractor_name,
        s.email AS subcontractor_email, b.bid_item_id,
        bi.description AS bid_item_description, bi.bid_due_date,
        p.id AS project_id, p.name AS project_name
    """

    INVITATION_JOINS = """
        LEFT JOIN subcontractors s ON s.id = b.subcontractor_id
        LEFT JOIN bid_items bi ON bi.id = b.bid_item_id
        LEFT JOIN projects p ON p.id = bi.project_id
    """

    WRITABLE_INVITATION_FIELDS = frozenset(
        {"reminder_count", "last_reminder_at", "next_reminder_at", "reminders_paused"}
    )

    @staticmethod
    def _id(value: Any) -> str | None:
        return str(value) if value is not None else None

    @classmethod
    def _row_to_invitation(cls, row: dict[str, Any]) -> BidInvitation:
        return BidInvitation(
            id=str(row["id"]),
            status=row["status"],
            reminder_count=row.get("reminder_count") or 0,
            reminders_paused=bool(row.get("reminders_paused")),
            invitation_sent_at=row.get("invitation_sent_at"),
            last_reminder_at=row.get("last_reminder_at"),
            next_reminder_at=row.get("next_reminder_at"),
            subcontractor_id=cls._id(row.get("subcontractor_id")),
            subcontractor_email=row.get("subcontractor_email"),
            subcontractor_name=row.get("subcontractor_name"),
            bid_item_id=cls._id(row.get("bid_item_id")),
            bid_item_description=row.get("bid_item_description"),
            bid_due_date=row.get("bid_due_date"),
            project_id=cls._id(row.get("project_id")),
            project_name=row.get("project_name"),
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @with_db_retry()
    async def read_settings(self) -> dict[str, Any] | None:
        """Return the single reminder_settings row, if any."""
        return await fetch_one("SELECT * FROM reminder_settings ORDER BY created_at ASC LIMIT 1")

    @with_db_retry()
    async def read_due_queue_entries(self, now: datetime, limit: int) -> list[ReminderQueueEntry]:
        """Pending queue entries whose scheduled time has arrived, oldest first."""
        query = f"""
            SELECT q.id AS queue_id, q.reminder_number, q.scheduled_for,
                   q.status AS queue_status, {self.INVITATION_COLUMNS}
            FROM reminder_queue q
            JOIN bids b ON b.id = q.bid_id
            {self.INVITATION_JOINS}
            WHERE q.status = %s AND q.scheduled_for <= %s
            ORDER BY q.scheduled_for ASC, q.reminder_number ASC
            LIMIT %s
        """
        rows = await fetch_all(query, (QUEUE_PENDING, now, limit))

        return [
            ReminderQueueEntry(
                id=str(row["queue_id"]),
                bid_id=str(row["id"]),
                reminder_number=row["reminder_number"],
                scheduled_for=row["scheduled_for"],
                status=row["queue_status"],
                invitation=self._row_to_invitation(row),
            )
            for row in rows
        ]

    @with_db_retry()
    async def read_eligible_invitations(
        self, now: datetime, max_reminders: int, limit: int
    ) -> list[BidInvitation]:
        """Invited, unpaused, under-cap invitations whose next reminder is not in the future."""
        query = f"""
            SELECT {self.INVITATION_COLUMNS}
            FROM bids b
            {self.INVITATION_JOINS}
            WHERE b.status = 'invited'
              AND b.reminders_paused = FALSE
              AND b.reminder_count < %s
              AND (b.next_reminder_at IS NULL OR b.next_reminder_at <= %s)
            ORDER BY b.invitation_sent_at ASC NULLS LAST
            LIMIT %s
        """
        rows = await fetch_all(query, (max_reminders, now, limit))
        return [self._row_to_invitation(row) for row in rows]

    @with_db_retry()
    async def read_invitations_by_ids(self, ids: list[str]) -> list[BidInvitation]:
        """Invitations in status 'invited' among the given ids."""
        if not ids:
            return []

        query = f"""
            SELECT {self.INVITATION_COLUMNS}
            FROM bids b
            {self.INVITATION_JOINS}
            WHERE b.id::text = ANY(%s) AND b.status = 'invited'
        """
        rows = await fetch_all(query, (list(ids),))
        return [self._row_to_invitation(row) for row in rows]

    @with_db_retry()
    async def read_invitation(self, bid_id: str) -> BidInvitation | None:
        query = f"""
            SELECT {self.INVITATION_COLUMNS}
            FROM bids b
            {self.INVITATION_JOINS}
            WHERE b.id::text = %s
        """
        row = await fetch_one(query, (bid_id,))
        return self._row_to_invitation(row) if row else None

    @with_db_retry()
    async def read_dashboard_stats(self, now: datetime, settings: CadenceSettings) -> dict[str, int]:
        """Counts backing the reminder dashboard."""
        query = """
            SELECT
                (SELECT COUNT(*) FROM bids WHERE status = 'invited') AS total_pending,
                (SELECT COUNT(*) FROM bids
                    WHERE status = 'invited' AND reminders_paused = FALSE AND reminder_count = 0
                      AND invitation_sent_at <= %(now)s - make_interval(days => %(first)s))
                    AS needs_first_reminder,
                (SELECT COUNT(*) FROM bids
                    WHERE status = 'invited' AND reminders_paused = FALSE AND reminder_count = 1
                      AND invitation_sent_at <= %(now)s - make_interval(days => %(second)s))
                    AS needs_second_reminder,
                (SELECT COUNT(*) FROM bids
                    WHERE status = 'invited' AND reminders_paused = FALSE AND reminder_count = 2
                      AND invitation_sent_at <= %(now)s - make_interval(days => %(final)s))
                    AS needs_final_reminder,
                (SELECT COUNT(*) FROM reminder_queue
                    WHERE status = 'pending' AND scheduled_for <= %(now)s) AS queue_ready,
                (SELECT COUNT(*) FROM reminder_history
                    WHERE status = 'sent' AND created_at > %(now)s - INTERVAL '24 hours')
                    AS sent_today,
                (SELECT COUNT(*) FROM reminder_history
                    WHERE status = 'sent' AND created_at > %(now)s - INTERVAL '7 days')
                    AS sent_this_week
        """
        params = {
            "now": now,
            "first": settings.first_reminder_days,
            "second": settings.second_reminder_days,
            "final": settings.final_reminder_days,
        }
        row = await fetch_one(query, params)
        return {key: int(value or 0) for key, value in (row or {}).items()}

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def write_invitation_reminder_state(self, bid_id: str, fields: dict[str, Any]) -> None:
        """Update reminder bookkeeping columns on a bids row."""
        unknown = set(fields) - self.WRITABLE_INVITATION_FIELDS
        if unknown:
            raise ReminderRepositoryError(
                f"Refusing to write bid columns: {sorted(unknown)}",
                operation="write_invitation_reminder_state",
                recoverable=False,
            )
        if not fields:
            return

        assignments = sql.SQL(", ").join(
            sql.SQL("{} = {}").format(sql.Identifier(name), sql.Placeholder())
            for name in fields
        )
        query = sql.SQL("UPDATE bids SET {}, updated_at = NOW() WHERE id::text = %s").format(
            assignments
        )

        affected = await execute_query(query, (*fields.values(), bid_id))
        if affected == 0:
            raise ReminderRepositoryError(
                f"Bid {bid_id} not found", operation="write_invitation_reminder_state"
            )

    async def claim_queue_entry(self, entry_id: str) -> bool:
        """Move a pending entry to processing; False if another run got there first."""
        query = """
            UPDATE reminder_queue
            SET status = %s
            WHERE id::text = %s AND status = %s
        """
        affected = await execute_query(query, (QUEUE_PROCESSING, entry_id, QUEUE_PENDING))
        return affected == 1

    async def write_queue_entry_status(
        self, entry_id: str, status: str, error_message: str | None = None
    ) -> None:
        query = """
            UPDATE reminder_queue
            SET status = %s,
                processed_at = NOW(),
                error_message = %s
            WHERE id::text = %s
        """
        truncated = error_message[:500] if error_message else None
        await execute_query(query, (status, truncated, entry_id))

    async def append_history_record(self, record: ReminderHistoryRecord) -> None:
        query = """
            INSERT INTO reminder_history (
                bid_id, subcontractor_id, project_id, bid_item_id,
                reminder_number, reminder_type, channel, to_email,
                subject, status, error_message
            )
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
        """
        await execute_query(
            query,
            (
                record.bid_id,
                record.subcontractor_id,
                record.project_id,
                record.bid_item_id,
                record.reminder_number,
                record.reminder_type,
                record.channel,
                record.to_email or "",
                record.subject,
                record.status,
                record.error_message,
            ),
        )

    async def log_communication(self, invitation: BidInvitation, subject: str, notes: str) -> None:
        query = """
            INSERT INTO communications (
                subcontractor_id, project_id, comm_type, direction, subject, content, status
            )
            VALUES (%s, %s, 'email', 'outbound', %s, %s, 'sent')
        """
        await execute_query(
            query, (invitation.subcontractor_id, invitation.project_id, subject, notes)
        )

    async def insert_queue_entry(
        self, invitation: BidInvitation, reminder_number: int, scheduled_for: datetime
    ) -> bool:
        """
        Pre-schedule a reminder. The (bid_id, reminder_number) unique key makes
        this a claim: False means that ordinal is already queued.
        """
        query = """
            INSERT INTO reminder_queue (
                bid_id, subcontractor_id, project_id, scheduled_for, reminder_number
            )
            VALUES (%s, %s, %s, %s, %s)
            ON CONFLICT (bid_id, reminder_number) DO NOTHING
            RETURNING id
        """
        row = await fetch_one(
            query,
            (
                invitation.id,
                invitation.subcontractor_id,
                invitation.project_id,
                scheduled_for,
                reminder_number,
            ),
        )
        return row is not None

    async def cancel_pending_queue_entries(self, bid_id: str) -> int:
        query = """
            UPDATE reminder_queue
            SET status = %s, processed_at = NOW()
            WHERE bid_id::text = %s AND status = %s
        """
        return await execute_query(query, (QUEUE_CANCELLED, bid_id, QUEUE_PENDING))

    async def set_reminders_paused(self, bid_id: str, paused: bool) -> None:
        """Pause or resume an invitation; pausing also cancels its pending queue entries."""
        statements = [
            (
                "UPDATE bids SET reminders_paused = %s, updated_at = NOW() WHERE id::text = %s",
                (paused, bid_id),
            )
        ]
        if paused:
            statements.append(
                (
                    "UPDATE reminder_queue SET status = %s, processed_at = NOW() "
                    "WHERE bid_id::text = %s AND status = %s",
                    (QUEUE_CANCELLED, bid_id, QUEUE_PENDING),
                )
            )
        await execute_transaction(statements)
        logger.info("Bid reminders paused" if paused else "Bid reminders resumed", bid_id=bid_id)


reminder_repository = ReminderRepository()
