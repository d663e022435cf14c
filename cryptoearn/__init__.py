"""
CryptoEarn Ledger

This package provides:
- Account registration and bearer-token authentication
- A per-account locked ledger of balances and lifetime earnings
- Reward claims across mining, staking, trading and referral methods
- Withdrawals debited on request and settled asynchronously: pending → completed / failed
- Read-only platform and per-user statistics
"""

from .errors import ErrorKind, LedgerServiceError
from .models import (
    EarningMethodId,
    WithdrawalStatus,
    Account,
    PublicAccount,
    RewardRecord,
    WithdrawalRecord,
)
from .service import LedgerService
from .storage import InMemoryStorage

__all__ = [
    "ErrorKind",
    "LedgerServiceError",
    "EarningMethodId",
    "WithdrawalStatus",
    "Account",
    "PublicAccount",
    "RewardRecord",
    "WithdrawalRecord",
    "LedgerService",
    "InMemoryStorage",
]
