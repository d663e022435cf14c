import asyncio
from decimal import Decimal
from uuid import UUID

from .errors import AccountNotFoundError, InsufficientBalanceError, InvalidAmountError
from .models import Account
from .storage import InMemoryStorage

# Decimal places a ledger amount may carry.
AMOUNT_PLACES = 8


def check_amount(amount: Decimal) -> None:
    """Raise InvalidAmountError for NaN, infinite, non-positive or over-precise amounts."""
    if not amount.is_finite() or amount <= 0:
        raise InvalidAmountError()
    _, digits, exponent = amount.as_tuple()
    trailing_zeros = len(digits) - len("".join(map(str, digits)).rstrip("0"))
    if exponent + trailing_zeros < -AMOUNT_PLACES:
        raise InvalidAmountError(f"Amounts carry at most {AMOUNT_PLACES} decimal places")


class Ledger:
    """
    Balance and lifetime-earned totals per account.

    credit() and debit() mutate an account in place and must be called while
    holding that account's lock (see locked()). They never write records:
    callers append the matching RewardRecord or WithdrawalRecord inside the
    same critical section.
    """

    def __init__(self, storage: InMemoryStorage):
        self.storage = storage

    def locked(self, account_id: UUID) -> asyncio.Lock:
        return self.storage.lock_for(account_id)

    def get(self, account_id: UUID) -> Account:
        return Account(**self._user(account_id))

    def credit(self, account_id: UUID, amount: Decimal) -> Decimal:
        check_amount(amount)
        user = self._user(account_id)
        self._require_lock(account_id)
        user["balance"] += amount
        user["total_earned"] += amount
        return user["balance"]

    def debit(self, account_id: UUID, amount: Decimal) -> Decimal:
        check_amount(amount)
        user = self._user(account_id)
        self._require_lock(account_id)
        if amount > user["balance"]:
            raise InsufficientBalanceError()
        user["balance"] -= amount
        return user["balance"]

    def _user(self, account_id: UUID) -> dict:
        user = self.storage.users.get(account_id)
        if not user:
            raise AccountNotFoundError()
        return user

    def _require_lock(self, account_id: UUID) -> None:
        if not self.storage.lock_for(account_id).locked():
            raise RuntimeError(f"Ledger mutation on {account_id} without holding its lock")
