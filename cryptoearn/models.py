from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID
from pydantic import BaseModel, Field, ConfigDict


class EarningMethodId(str, Enum):
    MINING = "mining"
    STAKING = "staking"
    TRADING = "trading"
    REFERRAL = "referral"


class WithdrawalStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class RegisterRequest(BaseModel):
    email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)
    name: str = ""

    model_config = ConfigDict(json_schema_extra={
        "example": {"email": "miner@example.com", "password": "hunter22", "name": "Ada Miner"}
    })


class LoginRequest(BaseModel):
    email: str
    password: str


class ClaimRequest(BaseModel):
    method: str = Field(..., description="One of mining, staking, trading, referral")
    amount: Decimal

    model_config = ConfigDict(json_schema_extra={
        "example": {"method": "mining", "amount": 12.5}
    })


class WithdrawRequest(BaseModel):
    amount: Decimal
    address: str = ""

    model_config = ConfigDict(json_schema_extra={
        "example": {"amount": 20, "address": "0x9f2c4e1b7a5d3c8e6f0a"}
    })


class Account(BaseModel):
    id: UUID
    email: str
    password_hash: str
    name: str
    balance: Decimal = Decimal("0")
    total_earned: Decimal = Decimal("0")
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

    def public_view(self) -> "PublicAccount":
        return PublicAccount(
            id=self.id, email=self.email, name=self.name,
            balance=self.balance, total_earned=self.total_earned,
            created_at=self.created_at,
        )


class PublicAccount(BaseModel):
    id: UUID
    email: str
    name: str
    balance: Decimal
    total_earned: Decimal
    created_at: datetime


class TokenClaims(BaseModel):
    sub: UUID
    email: str
    iat: datetime
    exp: Optional[datetime] = None


class RewardRecord(BaseModel):
    id: UUID
    account_id: UUID
    method: EarningMethodId
    amount: Decimal
    claimed_at: datetime

    model_config = ConfigDict(frozen=True, from_attributes=True)


class WithdrawalRecord(BaseModel):
    id: UUID
    account_id: UUID
    amount: Decimal
    address: str
    status: WithdrawalStatus
    requested_at: datetime
    settled_at: Optional[datetime] = None
    failure_reason: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)

    def is_pending(self) -> bool:
        return self.status == WithdrawalStatus.PENDING


class EarningMethodView(BaseModel):
    id: EarningMethodId
    name: str
    description: str
    min_amount: Decimal
    max_amount: Decimal
    cooldown_seconds: int
    cooldown_expires_at: Optional[datetime] = None


class AuthResponse(BaseModel):
    token: str
    user: PublicAccount


class ClaimResponse(BaseModel):
    success: bool = True
    earning: RewardRecord
    new_balance: Decimal
    total_earned: Decimal


class WithdrawalResponse(BaseModel):
    success: bool = True
    withdrawal: WithdrawalRecord
    new_balance: Decimal


class UserStats(BaseModel):
    balance: Decimal
    total_earned: Decimal
    total_withdrawn: Decimal
    earnings_count: int
    withdrawals_count: int


class StatsResponse(BaseModel):
    total_users: int
    total_earnings: Decimal
    total_withdrawals: Decimal
    user_stats: UserStats


class CryptoPrice(BaseModel):
    price: float
    change: float
