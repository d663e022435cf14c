import asyncio
import logging
import random
from typing import Optional

from .models import CryptoPrice

logger = logging.getLogger(__name__)

INITIAL_PRICES: dict[str, tuple[float, float]] = {
    "bitcoin": (45000, 2.5),
    "ethereum": (3200, -1.2),
    "cardano": (0.85, 4.1),
    "solana": (120, -0.8),
    "polygon": (1.2, 3.2),
    "chainlink": (18.5, 1.8),
}


class PriceFeed:
    """Display-only random-walk quotes. Nothing in the ledger reads these."""

    def __init__(self, rng: Optional[random.Random] = None, max_step_percent: float = 5.0):
        self.rng = rng or random.Random()
        self.max_step_percent = max_step_percent
        self._prices = {name: {"price": p, "change": c} for name, (p, c) in INITIAL_PRICES.items()}

    def snapshot(self) -> dict[str, CryptoPrice]:
        return {name: CryptoPrice(**data) for name, data in self._prices.items()}

    def step(self) -> None:
        for data in self._prices.values():
            change_percent = self.rng.uniform(-self.max_step_percent, self.max_step_percent)
            data["price"] *= 1 + change_percent / 100
            data["change"] = change_percent

    async def run(self, interval_seconds: float) -> None:
        while True:
            await asyncio.sleep(interval_seconds)
            self.step()
            logger.debug("Stepped %d prices", len(self._prices))
