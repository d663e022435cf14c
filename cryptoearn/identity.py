import asyncio
import logging
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

import bcrypt
import jwt
from pydantic import ValidationError as PydanticValidationError

from .config import Settings
from .errors import (
    AccountNotFoundError,
    DuplicateIdentityError,
    ForbiddenError,
    InvalidCredentialsError,
    UnauthenticatedError,
)
from .models import Account, TokenClaims
from .storage import InMemoryStorage
from .structured_logging import log_event

logger = logging.getLogger(__name__)

_DUMMY_SECRET = "cryptoearn-dummy-secret"


class IdentityStore:
    def __init__(self, storage: InMemoryStorage, settings: Settings):
        self.storage = storage
        self.settings = settings
        # Checked against when the email is unknown. Same cost as real digests.
        self._dummy_digest: Optional[str] = None

    async def register(self, email: str, secret: str, name: str) -> Account:
        # Exact, case-sensitive match on email.
        if email in self.storage.email_index:
            raise DuplicateIdentityError()

        digest = await asyncio.to_thread(self.hash_secret, secret)

        async with self.storage.registration_lock:
            if email in self.storage.email_index:
                raise DuplicateIdentityError()
            account_id = uuid4()
            self.storage.users[account_id] = {
                "id": account_id,
                "email": email,
                "password_hash": digest,
                "name": name,
                "balance": Decimal("0"),
                "total_earned": Decimal("0"),
                "created_at": datetime.now(timezone.utc),
            }
            self.storage.email_index[email] = account_id

        log_event(logger, "account_registered", account_id=str(account_id))
        return Account(**self.storage.users[account_id])

    async def authenticate(self, email: str, secret: str) -> tuple[str, Account]:
        account_id = self.storage.email_index.get(email)
        user = self.storage.users.get(account_id) if account_id else None
        digest = user["password_hash"] if user else await self.dummy_digest()

        valid = await asyncio.to_thread(self.verify_secret, secret, digest)
        if user is None or not valid:
            log_event(logger, "login_failed", level=logging.WARNING, known_email=user is not None)
            raise InvalidCredentialsError()

        account = Account(**user)
        return self.issue_token(account), account

    def get(self, account_id: UUID) -> Account:
        user = self.storage.users.get(account_id)
        if not user:
            raise AccountNotFoundError()
        return Account(**user)

    async def dummy_digest(self) -> str:
        if self._dummy_digest is None:
            self._dummy_digest = await asyncio.to_thread(self.hash_secret, _DUMMY_SECRET)
        return self._dummy_digest

    def hash_secret(self, secret: str) -> str:
        return bcrypt.hashpw(secret.encode(), bcrypt.gensalt(rounds=self.settings.bcrypt_rounds)).decode()

    def verify_secret(self, secret: str, digest: str) -> bool:
        try:
            return bcrypt.checkpw(secret.encode(), digest.encode())
        except ValueError:
            return False

    def issue_token(self, account: Account, now: Optional[datetime] = None) -> str:
        now = now or datetime.now(timezone.utc)
        claims = {"sub": str(account.id), "email": account.email, "iat": now}
        if self.settings.token_ttl_seconds > 0:
            claims["exp"] = now + timedelta(seconds=self.settings.token_ttl_seconds)
        return jwt.encode(claims, self.settings.jwt_secret, algorithm=self.settings.jwt_algorithm)

    def verify_token(self, token: Optional[str]) -> TokenClaims:
        """
        Decode a bearer token.

        Missing or structurally garbled tokens raise UnauthenticatedError. Tokens
        that parse but fail signature, expiry or claim checks raise ForbiddenError.
        """
        if not token:
            raise UnauthenticatedError()
        try:
            payload = jwt.decode(
                token,
                self.settings.jwt_secret,
                algorithms=[self.settings.jwt_algorithm],
                options={"require": ["sub", "iat"]},
            )
        except jwt.ExpiredSignatureError:
            raise ForbiddenError("Token expired")
        except jwt.InvalidSignatureError:
            raise ForbiddenError()
        except jwt.DecodeError:
            raise UnauthenticatedError("Malformed token")
        except jwt.InvalidTokenError:
            raise ForbiddenError()

        try:
            return TokenClaims(**payload)
        except PydanticValidationError:
            raise ForbiddenError()
