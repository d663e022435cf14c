import asyncio
import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Awaitable, Callable, Optional
from uuid import UUID, uuid4

from .accounts import Ledger, check_amount
from .config import Settings
from .errors import InsufficientBalanceError, InvalidAddressError
from .models import WithdrawalRecord, WithdrawalStatus
from .storage import InMemoryStorage
from .structured_logging import log_event

logger = logging.getLogger(__name__)

Payout = Callable[[WithdrawalRecord], Awaitable[None]]


async def noop_payout(record: WithdrawalRecord) -> None:
    return None


class WithdrawalProcessor:
    """
    Debits the ledger when a withdrawal is requested and settles it later.

    Each request schedules one settlement task that waits
    settings.settlement_delay_seconds, runs the payout hook, then moves the
    record from pending to completed (or failed if the hook raises) under the
    account lock. The debit stands either way.
    """

    def __init__(
        self,
        storage: InMemoryStorage,
        ledger: Ledger,
        settings: Settings,
        payout: Optional[Payout] = None,
    ):
        self.storage = storage
        self.ledger = ledger
        self.settings = settings
        self.payout = payout or noop_payout
        self._tasks: dict[UUID, asyncio.Task] = {}

    @property
    def pending_settlements(self) -> int:
        return len(self._tasks)

    async def request(self, account_id: UUID, amount: Decimal, address: str) -> tuple[WithdrawalRecord, Decimal]:
        check_amount(amount)

        async with self.ledger.locked(account_id):
            account = self.ledger.get(account_id)
            if amount > account.balance:
                raise InsufficientBalanceError()
            if not address or len(address) < self.settings.min_address_length:
                raise InvalidAddressError()

            new_balance = self.ledger.debit(account_id, amount)
            record_id = uuid4()
            record = {
                "id": record_id,
                "account_id": account_id,
                "amount": amount,
                "address": address,
                "status": WithdrawalStatus.PENDING,
                "requested_at": datetime.now(timezone.utc),
                "settled_at": None,
                "failure_reason": None,
            }
            self.storage.withdrawal_records[record_id] = record
            self._schedule(record_id, account_id)

        log_event(
            logger, "withdrawal_requested",
            account_id=str(account_id), withdrawal_id=str(record_id),
            amount=str(amount), balance=str(new_balance),
        )
        return WithdrawalRecord(**record), new_balance

    def get(self, record_id: UUID) -> Optional[WithdrawalRecord]:
        record = self.storage.withdrawal_records.get(record_id)
        return WithdrawalRecord(**record) if record else None

    def list_withdrawals(self, account_id: UUID) -> list[WithdrawalRecord]:
        records = [WithdrawalRecord(**w) for w in reversed(self.storage.withdrawals_for(account_id))]
        records.sort(key=lambda w: w.requested_at, reverse=True)
        return records

    async def shutdown(self) -> None:
        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()

    def _schedule(self, record_id: UUID, account_id: UUID) -> None:
        task = asyncio.create_task(self._settle_after_delay(record_id, account_id))
        self._tasks[record_id] = task
        task.add_done_callback(lambda t: self._forget(record_id, t))

    def _forget(self, record_id: UUID, task: asyncio.Task) -> None:
        self._tasks.pop(record_id, None)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Settlement task for withdrawal %s crashed", record_id, exc_info=task.exception())

    async def _settle_after_delay(self, record_id: UUID, account_id: UUID) -> None:
        await asyncio.sleep(self.settings.settlement_delay_seconds)
        await self.settle(record_id, account_id)

    async def settle(self, record_id: UUID, account_id: UUID) -> WithdrawalRecord:
        record = self.storage.withdrawal_records[record_id]
        current = WithdrawalRecord(**record)
        if not current.is_pending():
            return current

        failure = None
        try:
            await self.payout(current)
        except Exception as e:
            logger.exception("Payout failed for withdrawal %s", record_id)
            failure = str(e) or type(e).__name__

        async with self.ledger.locked(account_id):
            if not WithdrawalRecord(**record).is_pending():
                return WithdrawalRecord(**record)
            record["status"] = WithdrawalStatus.FAILED if failure else WithdrawalStatus.COMPLETED
            record["failure_reason"] = failure
            record["settled_at"] = datetime.now(timezone.utc)

        if failure:
            log_event(
                logger, "withdrawal_failed", level=logging.WARNING,
                account_id=str(account_id), withdrawal_id=str(record_id), reason=failure,
            )
        else:
            log_event(
                logger, "withdrawal_settled",
                account_id=str(account_id), withdrawal_id=str(record_id), amount=str(record["amount"]),
            )
        return WithdrawalRecord(**record)
