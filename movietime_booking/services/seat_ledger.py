"""
Seat ledger: the per-show seat occupancy map and its atomic claim/release operations.
"""

import logging
from typing import Dict, Iterable, List, Optional, Set
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from ..models.show import Show
from ..utils.exceptions import (
    LedgerWriteConflictError,
    SeatsUnavailableError,
    ShowNotFoundError,
)

logger = logging.getLogger(__name__)


class SeatLedger:
    """
    Claims and releases seats on a show's ledger.

    Every write replaces the whole ``occupied_seats`` map in a single UPDATE
    guarded by the version that was read, so a multi-seat claim either lands
    completely or not at all. The ledger participates in the caller's
    transaction and never commits on its own.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def try_claim(self, show_id: UUID, seat_ids: Iterable[str], booking_id: UUID) -> Show:
        """
        Mark all ``seat_ids`` as held by ``booking_id``.

        Raises:
            ShowNotFoundError: If the show does not exist
            SeatsUnavailableError: If any requested seat is already held
            LedgerWriteConflictError: If the ledger changed between read and write
        """
        seat_ids = list(seat_ids)
        show = await self._load(show_id)
        ledger = dict(show.occupied_seats or {})

        taken = [seat for seat in seat_ids if seat in ledger]
        if taken:
            logger.info(f"Seats {taken} of show {show_id} already held")
            raise SeatsUnavailableError(str(show_id), taken)

        for seat in seat_ids:
            ledger[seat] = str(booking_id)

        await self._write(show, ledger)
        logger.debug(f"Claimed seats {seat_ids} on show {show_id} for booking {booking_id}")
        return show

    async def release(
        self,
        show_id: UUID,
        seat_ids: Iterable[str],
        booking_id: Optional[UUID] = None,
    ) -> List[str]:
        """
        Free ``seat_ids`` on the show's ledger.

        Seats that are already free are skipped. When ``booking_id`` is given,
        seats currently held by a different booking are skipped as well. A
        release with nothing left to free does not write.

        Returns:
            The seat ids that were actually freed
        """
        show = await self._load(show_id)
        ledger = dict(show.occupied_seats or {})
        holder = str(booking_id) if booking_id is not None else None

        released = [
            seat for seat in seat_ids
            if seat in ledger and (holder is None or ledger[seat] == holder)
        ]
        if not released:
            return []

        for seat in released:
            del ledger[seat]

        await self._write(show, ledger)
        logger.debug(f"Released seats {released} on show {show_id}")
        return released

    async def occupied(self, show_id: UUID) -> Dict[str, str]:
        """Current seat id to holder booking id map of a show."""
        show = await self._load(show_id)
        return dict(show.occupied_seats or {})

    async def holders(self, show_id: UUID) -> Set[UUID]:
        """Distinct booking ids currently holding seats on a show."""
        return {UUID(holder) for holder in (await self.occupied(show_id)).values()}

    async def _load(self, show_id: UUID) -> Show:
        result = await self.session.execute(
            select(Show)
            .where(Show.id == show_id)
            .execution_options(populate_existing=True)
        )
        show = result.scalar_one_or_none()
        if show is None:
            raise ShowNotFoundError(str(show_id))
        return show

    async def _write(self, show: Show, ledger: Dict[str, str]) -> None:
        result = await self.session.execute(
            update(Show)
            .where(Show.id == show.id, Show.version == show.version)
            .values(occupied_seats=ledger, version=Show.version + 1)
            .execution_options(synchronize_session=False)
        )

        if result.rowcount == 0:
            raise LedgerWriteConflictError(str(show.id))

        set_committed_value(show, "occupied_seats", ledger)
        set_committed_value(show, "version", show.version + 1)
