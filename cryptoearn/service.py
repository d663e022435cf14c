import functools
import logging
from decimal import Decimal
from typing import Optional

from .accounts import Ledger
from .config import Settings, load_settings
from .errors import InternalError, LedgerServiceError
from .identity import IdentityStore
from .models import (
    Account,
    AuthResponse,
    ClaimResponse,
    CryptoPrice,
    EarningMethodView,
    PublicAccount,
    RewardRecord,
    StatsResponse,
    WithdrawalRecord,
    WithdrawalResponse,
)
from .prices import PriceFeed
from .rewards import RewardEngine
from .stats import StatsAggregator
from .storage import InMemoryStorage
from .structured_logging import log_event
from .withdrawals import Payout, WithdrawalProcessor

logger = logging.getLogger(__name__)


def operation(func):
    """Let domain errors through; log anything else and surface it as InternalError."""
    @functools.wraps(func)
    async def wrapper(self, *args, **kwargs):
        try:
            return await func(self, *args, **kwargs)
        except LedgerServiceError:
            raise
        except Exception:
            logger.exception("Unhandled error in %s", func.__name__)
            log_event(logger, "internal_error", level=logging.ERROR, operation=func.__name__)
            raise InternalError()
    return wrapper


class LedgerService:
    def __init__(
        self,
        storage: Optional[InMemoryStorage] = None,
        settings: Optional[Settings] = None,
        payout: Optional[Payout] = None,
        price_feed: Optional[PriceFeed] = None,
    ):
        self.storage = storage or InMemoryStorage()
        self.settings = settings or load_settings()
        self.identity = IdentityStore(self.storage, self.settings)
        self.ledger = Ledger(self.storage)
        self.rewards = RewardEngine(self.storage, self.ledger, self.settings)
        self.withdrawals = WithdrawalProcessor(self.storage, self.ledger, self.settings, payout=payout)
        self.stats = StatsAggregator(self.storage)
        self.prices = price_feed or PriceFeed()

    @operation
    async def register(self, email: str, password: str, name: str) -> AuthResponse:
        account = await self.identity.register(email, password, name)
        return AuthResponse(token=self.identity.issue_token(account), user=account.public_view())

    @operation
    async def login(self, email: str, password: str) -> AuthResponse:
        token, account = await self.identity.authenticate(email, password)
        return AuthResponse(token=token, user=account.public_view())

    @operation
    async def get_profile(self, token: Optional[str]) -> PublicAccount:
        return self._actor(token).public_view()

    @operation
    async def list_earning_methods(self, token: Optional[str] = None) -> list[EarningMethodView]:
        account_id = self._actor(token).id if token else None
        return self.rewards.list_methods(account_id)

    @operation
    async def claim_earning(self, token: Optional[str], method: str, amount: Decimal) -> ClaimResponse:
        actor = self._actor(token)
        record, new_balance, total_earned = await self.rewards.claim(actor.id, method, amount)
        return ClaimResponse(earning=record, new_balance=new_balance, total_earned=total_earned)

    @operation
    async def earnings_history(self, token: Optional[str]) -> list[RewardRecord]:
        actor = self._actor(token)
        return self.rewards.list_earnings(actor.id, limit=self.settings.earnings_history_limit)

    @operation
    async def request_withdrawal(self, token: Optional[str], amount: Decimal, address: str) -> WithdrawalResponse:
        actor = self._actor(token)
        record, new_balance = await self.withdrawals.request(actor.id, amount, address)
        return WithdrawalResponse(withdrawal=record, new_balance=new_balance)

    @operation
    async def list_withdrawals(self, token: Optional[str]) -> list[WithdrawalRecord]:
        actor = self._actor(token)
        return self.withdrawals.list_withdrawals(actor.id)

    @operation
    async def get_stats(self, token: Optional[str]) -> StatsResponse:
        actor = self._actor(token)
        return self.stats.get_stats(actor.id)

    def get_prices(self) -> dict[str, CryptoPrice]:
        return self.prices.snapshot()

    async def shutdown(self) -> None:
        await self.withdrawals.shutdown()

    def _actor(self, token: Optional[str]) -> Account:
        claims = self.identity.verify_token(token)
        return self.ledger.get(claims.sub)
