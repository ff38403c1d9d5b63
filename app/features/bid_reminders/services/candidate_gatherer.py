"""
Candidate gathering for a reminder run.

Automatic runs merge two sources: due entries from reminder_queue and
invitations whose cadence says a reminder is due now. The queue wins when
both produce the same invitation. Manual runs resolve the supplied ids
directly.
"""

from dataclasses import dataclass, field
from datetime import datetime

from app.features.bid_reminders.domain.cadence import next_ordinal_due
from app.features.bid_reminders.domain.models import (
    SOURCE_COMPUTED,
    SOURCE_QUEUED,
    CadenceSettings,
    Candidate,
)
from app.features.bid_reminders.ports import ReminderStore
from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

DEFAULT_BATCH_SIZE = 50


@dataclass(frozen=True, slots=True)
class GatherMode:
    """Either an explicit list of bid ids (manual) or an automatic batch."""

    manual_ids: tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def automatic(cls) -> "GatherMode":
        return cls()

    @classmethod
    def manual(cls, ids: list[str]) -> "GatherMode":
        # Keep caller order, drop repeats
        return cls(manual_ids=tuple(dict.fromkeys(ids)))

    @property
    def is_manual(self) -> bool:
        return bool(self.manual_ids)

    @property
    def reminder_type(self) -> str:
        return "manual" if self.is_manual else "automatic"


class CandidateGatherer:
    """Builds the ordered candidate list for one run."""

    def __init__(self, store: ReminderStore, batch_size: int = DEFAULT_BATCH_SIZE):
        self.store = store
        self.batch_size = batch_size

    async def gather(
        self, mode: GatherMode, settings: CadenceSettings, now: datetime
    ) -> list[Candidate]:
        if mode.is_manual:
            return await self._gather_manual(mode.manual_ids)

        queued = await self._gather_queued(now)
        computed = await self._gather_computed(settings, now)

        queued_ids = {candidate.bid_id for candidate in queued}
        deduped = [candidate for candidate in computed if candidate.bid_id not in queued_ids]

        logger.info(
            "Reminder candidates gathered",
            queued=len(queued),
            computed=len(computed),
            computed_dropped_as_queued=len(computed) - len(deduped),
        )
        return queued + deduped

    async def _gather_queued(self, now: datetime) -> list[Candidate]:
        entries = await self.store.read_due_queue_entries(now, self.batch_size)

        candidates: list[Candidate] = []
        seen: set[str] = set()
        for entry in entries:
            if entry.invitation is None:
                logger.warning("Queue entry without invitation", queue_id=entry.id, bid_id=entry.bid_id)
                continue
            if entry.bid_id in seen:
                # A later ordinal for the same bid waits for the next run
                logger.debug(
                    "Second due queue entry for bid deferred",
                    queue_id=entry.id,
                    bid_id=entry.bid_id,
                    reminder_number=entry.reminder_number,
                )
                continue

            seen.add(entry.bid_id)
            candidates.append(
                Candidate(
                    invitation=entry.invitation,
                    reminder_number=entry.reminder_number,
                    source=SOURCE_QUEUED,
                    queue_entry_id=entry.id,
                )
            )
        return candidates

    async def _gather_computed(self, settings: CadenceSettings, now: datetime) -> list[Candidate]:
        invitations = await self.store.read_eligible_invitations(
            now, settings.max_reminders, self.batch_size
        )

        candidates = []
        for invitation in invitations:
            ordinal = next_ordinal_due(invitation, settings, now)
            if ordinal is None:
                continue
            candidates.append(
                Candidate(invitation=invitation, reminder_number=ordinal, source=SOURCE_COMPUTED)
            )
        return candidates

    async def _gather_manual(self, ids: tuple[str, ...]) -> list[Candidate]:
        invitations = await self.store.read_invitations_by_ids(list(ids))
        by_id = {invitation.id: invitation for invitation in invitations}

        missing = [bid_id for bid_id in ids if bid_id not in by_id]
        if missing:
            logger.warning("Manual reminder ids not found or not awaiting a bid", bid_ids=missing)

        candidates = [
            Candidate(
                invitation=by_id[bid_id],
                reminder_number=by_id[bid_id].reminder_count + 1,
                source=SOURCE_COMPUTED,
            )
            for bid_id in ids
            if bid_id in by_id and by_id[bid_id].is_awaiting_response()
        ]
        logger.info("Manual reminder candidates resolved", requested=len(ids), found=len(candidates))
        return candidates
