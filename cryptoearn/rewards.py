import logging
import random
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable, Optional
from uuid import UUID, uuid4

from .accounts import Ledger, check_amount
from .config import Settings
from .errors import InvalidAmountError, OnCooldownError, UnknownMethodError
from .models import EarningMethodId, EarningMethodView, RewardRecord
from .storage import InMemoryStorage
from .structured_logging import log_event

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EarningMethod:
    id: EarningMethodId
    name: str
    description: str
    min_amount: Decimal
    max_amount: Decimal
    cooldown_seconds: int

    def contains(self, amount: Decimal) -> bool:
        return self.min_amount <= amount <= self.max_amount

    def suggest_amount(self, rng: Optional[random.Random] = None) -> Decimal:
        rng = rng or random
        value = rng.uniform(float(self.min_amount), float(self.max_amount))
        amount = Decimal(str(value)).quantize(Decimal("0.01"))
        return min(max(amount, self.min_amount), self.max_amount)

    def to_view(self, cooldown_expires_at: Optional[datetime] = None) -> EarningMethodView:
        return EarningMethodView(
            id=self.id, name=self.name, description=self.description,
            min_amount=self.min_amount, max_amount=self.max_amount,
            cooldown_seconds=self.cooldown_seconds,
            cooldown_expires_at=cooldown_expires_at,
        )


EARNING_METHODS: dict[str, EarningMethod] = {
    m.id.value: m for m in (
        EarningMethod(EarningMethodId.MINING, "Crypto Mining",
                      "Mine cryptocurrencies and earn rewards", Decimal("5"), Decimal("25"), 300),
        EarningMethod(EarningMethodId.STAKING, "Staking Rewards",
                      "Stake your tokens and earn passive income", Decimal("10"), Decimal("50"), 600),
        EarningMethod(EarningMethodId.TRADING, "Trading Profits",
                      "Execute profitable trades and earn commissions", Decimal("15"), Decimal("75"), 900),
        EarningMethod(EarningMethodId.REFERRAL, "Referral Bonus",
                      "Earn from your referral network", Decimal("8"), Decimal("40"), 1800),
    )
}


class RewardEngine:
    """
    Records reward claims and credits the ledger.

    Cooldowns are always tracked per (account, method) so callers can display
    them. They are only enforced when settings.enforce_cooldowns is set; the
    default accepts back-to-back claims and leaves the gate to the client.
    """

    def __init__(
        self,
        storage: InMemoryStorage,
        ledger: Ledger,
        settings: Settings,
        methods: Optional[dict[str, EarningMethod]] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.storage = storage
        self.ledger = ledger
        self.settings = settings
        self.methods = methods or EARNING_METHODS
        self.clock = clock

    def get_method(self, method: str) -> EarningMethod:
        config = self.methods.get(method)
        if config is None:
            raise UnknownMethodError()
        return config

    async def claim(self, account_id: UUID, method: str, amount: Decimal) -> tuple[RewardRecord, Decimal, Decimal]:
        config = self.get_method(method)
        self._validate_amount(config, amount)

        async with self.ledger.locked(account_id):
            now = self.clock()
            key = (account_id, config.id.value)
            if self.settings.enforce_cooldowns:
                expires_at = self.storage.cooldowns.get(key, 0.0)
                if expires_at > now:
                    raise OnCooldownError(
                        f"{config.name} is on cooldown", retry_after=expires_at - now,
                    )

            new_balance = self.ledger.credit(account_id, amount)
            record_id = uuid4()
            record = {
                "id": record_id,
                "account_id": account_id,
                "method": config.id,
                "amount": amount,
                "claimed_at": datetime.fromtimestamp(now, tz=timezone.utc),
            }
            self.storage.reward_records[record_id] = record
            self.storage.cooldowns[key] = now + config.cooldown_seconds
            total_earned = self.ledger.get(account_id).total_earned

        log_event(
            logger, "reward_claimed",
            account_id=str(account_id), method=config.id.value,
            amount=str(amount), balance=str(new_balance),
        )
        return RewardRecord(**record), new_balance, total_earned

    def list_earnings(self, account_id: UUID, limit: Optional[int] = None) -> list[RewardRecord]:
        records = [RewardRecord(**r) for r in reversed(self.storage.rewards_for(account_id))]
        records.sort(key=lambda r: r.claimed_at, reverse=True)
        return records[:limit] if limit is not None else records

    def cooldown_expiry(self, account_id: UUID, method: str) -> Optional[datetime]:
        expires_at = self.storage.cooldowns.get((account_id, method))
        if expires_at is None or expires_at <= self.clock():
            return None
        return datetime.fromtimestamp(expires_at, tz=timezone.utc)

    def list_methods(self, account_id: Optional[UUID] = None) -> list[EarningMethodView]:
        return [
            m.to_view(self.cooldown_expiry(account_id, key) if account_id else None)
            for key, m in self.methods.items()
        ]

    def _validate_amount(self, config: EarningMethod, amount: Decimal) -> None:
        check_amount(amount)
        if amount > self.settings.max_claim_amount:
            raise InvalidAmountError()
        if self.settings.enforce_method_bounds and not config.contains(amount):
            raise InvalidAmountError(
                f"Amount for {config.id.value} must be between {config.min_amount} and {config.max_amount}"
            )
