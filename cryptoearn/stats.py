from decimal import Decimal
from uuid import UUID

from .models import StatsResponse, UserStats
from .storage import InMemoryStorage


class StatsAggregator:
    def __init__(self, storage: InMemoryStorage):
        self.storage = storage

    def get_stats(self, account_id: UUID) -> StatsResponse:
        # Point-in-time scan; other accounts may be mid-update, the caller's own writes are visible.
        rewards = list(self.storage.reward_records.values())
        withdrawals = list(self.storage.withdrawal_records.values())
        user = self.storage.users.get(account_id)

        user_rewards = [r for r in rewards if r["account_id"] == account_id]
        user_withdrawals = [w for w in withdrawals if w["account_id"] == account_id]

        return StatsResponse(
            total_users=len(self.storage.users),
            total_earnings=sum((r["amount"] for r in rewards), Decimal("0")),
            total_withdrawals=sum((w["amount"] for w in withdrawals), Decimal("0")),
            user_stats=UserStats(
                balance=user["balance"] if user else Decimal("0"),
                total_earned=user["total_earned"] if user else Decimal("0"),
                total_withdrawn=sum((w["amount"] for w in user_withdrawals), Decimal("0")),
                earnings_count=len(user_rewards),
                withdrawals_count=len(user_withdrawals),
            ),
        )
