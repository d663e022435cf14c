import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, Header, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import Settings, load_settings
from .errors import LedgerServiceError, OnCooldownError
from .models import (
    AuthResponse, ClaimRequest, ClaimResponse, CryptoPrice, EarningMethodView,
    LoginRequest, PublicAccount, RegisterRequest, RewardRecord, StatsResponse,
    WithdrawalRecord, WithdrawalResponse, WithdrawRequest,
)
from .service import LedgerService
from .structured_logging import RequestLogMiddleware, configure_structured_logging

logger = logging.getLogger(__name__)


def bearer_token(authorization: Optional[str] = Header(default=None)) -> Optional[str]:
    if not authorization:
        return None
    parts = authorization.split(" ", 1)
    return parts[1].strip() if len(parts) == 2 else None


def create_app(service: Optional[LedgerService] = None, settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or (service.settings if service else load_settings())
    service = service or LedgerService(settings=settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        price_task = None
        if settings.price_update_seconds > 0:
            price_task = asyncio.create_task(service.prices.run(settings.price_update_seconds))
        logger.info("CryptoEarn ledger API started")
        try:
            yield
        finally:
            if price_task is not None:
                price_task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await price_task
            await service.shutdown()
            logger.info("CryptoEarn ledger API stopped")

    app = FastAPI(
        title="CryptoEarn Ledger API",
        description="Demo earn-and-withdraw ledger with rate-limited reward claims and asynchronous withdrawal settlement",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.service = service

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestLogMiddleware, enabled=settings.log_requests)

    @app.exception_handler(LedgerServiceError)
    async def ledger_error_handler(request: Request, exc: LedgerServiceError) -> JSONResponse:
        headers = None
        if isinstance(exc, OnCooldownError):
            headers = {"Retry-After": str(max(1, int(exc.retry_after + 0.999)))}
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)

    @app.get("/health", tags=["System"])
    def health_check():
        return {"status": "healthy", "service": "cryptoearn-ledger"}

    @app.post("/api/register", response_model=AuthResponse, tags=["Auth"])
    async def register(request: RegisterRequest) -> AuthResponse:
        return await service.register(request.email, request.password, request.name)

    @app.post("/api/login", response_model=AuthResponse, tags=["Auth"])
    async def login(request: LoginRequest) -> AuthResponse:
        return await service.login(request.email, request.password)

    @app.get("/api/profile", response_model=PublicAccount, tags=["Auth"])
    async def profile(token: Optional[str] = Depends(bearer_token)) -> PublicAccount:
        return await service.get_profile(token)

    @app.get("/api/earning-methods", response_model=list[EarningMethodView], tags=["Earnings"])
    async def earning_methods(token: Optional[str] = Depends(bearer_token)) -> list[EarningMethodView]:
        return await service.list_earning_methods(token)

    @app.post("/api/claim-earning", response_model=ClaimResponse, tags=["Earnings"])
    async def claim_earning(request: ClaimRequest, token: Optional[str] = Depends(bearer_token)) -> ClaimResponse:
        return await service.claim_earning(token, request.method, request.amount)

    @app.get("/api/earnings-history", response_model=list[RewardRecord], tags=["Earnings"])
    async def earnings_history(token: Optional[str] = Depends(bearer_token)) -> list[RewardRecord]:
        return await service.earnings_history(token)

    @app.post("/api/withdraw", response_model=WithdrawalResponse, tags=["Withdrawals"])
    async def withdraw(request: WithdrawRequest, token: Optional[str] = Depends(bearer_token)) -> WithdrawalResponse:
        return await service.request_withdrawal(token, request.amount, request.address)

    @app.get("/api/withdrawals", response_model=list[WithdrawalRecord], tags=["Withdrawals"])
    async def withdrawals(token: Optional[str] = Depends(bearer_token)) -> list[WithdrawalRecord]:
        return await service.list_withdrawals(token)

    @app.get("/api/stats", response_model=StatsResponse, tags=["Stats"])
    async def stats(token: Optional[str] = Depends(bearer_token)) -> StatsResponse:
        return await service.get_stats(token)

    @app.get("/api/crypto-prices", response_model=dict[str, CryptoPrice], tags=["Market"])
    def crypto_prices() -> dict[str, CryptoPrice]:
        return service.get_prices()

    return app


if __name__ == "__main__":
    import uvicorn
    configure_structured_logging()
    uvicorn.run("cryptoearn.api:create_app", factory=True, host="0.0.0.0", port=8000)
