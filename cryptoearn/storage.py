import asyncio
from uuid import UUID


class InMemoryStorage:
    """
    Process-local tables shared by the identity, ledger, reward and withdrawal
    components. Build one at startup and hand it to each component; tests build
    a fresh one per case.
    """

    def __init__(self):
        self.users: dict[UUID, dict] = {}
        self.email_index: dict[str, UUID] = {}
        self.reward_records: dict[UUID, dict] = {}
        self.withdrawal_records: dict[UUID, dict] = {}
        self.cooldowns: dict[tuple[UUID, str], float] = {}
        self.registration_lock = asyncio.Lock()
        self._account_locks: dict[UUID, asyncio.Lock] = {}

    def lock_for(self, account_id: UUID) -> asyncio.Lock:
        lock = self._account_locks.get(account_id)
        if lock is None:
            lock = self._account_locks[account_id] = asyncio.Lock()
        return lock

    def rewards_for(self, account_id: UUID) -> list[dict]:
        return [r for r in self.reward_records.values() if r["account_id"] == account_id]

    def withdrawals_for(self, account_id: UUID) -> list[dict]:
        return [w for w in self.withdrawal_records.values() if w["account_id"] == account_id]
