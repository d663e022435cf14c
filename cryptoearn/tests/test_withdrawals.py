"""
Unit Tests for the Withdrawal Processor

Tests cover:
1. Validation order: amount, balance, address
2. Optimistic debit at request time
3. Settlement: pending → completed, or failed when the payout hook raises
4. Cancellation of pending settlements on shutdown
"""

import asyncio
from dataclasses import replace
from decimal import Decimal
from uuid import uuid4

import pytest

from cryptoearn.accounts import Ledger
from cryptoearn.errors import InsufficientBalanceError, InvalidAddressError, InvalidAmountError
from cryptoearn.identity import IdentityStore
from cryptoearn.models import WithdrawalStatus
from cryptoearn.withdrawals import WithdrawalProcessor

ADDRESS = "validaddr123"


async def _setup(storage, settings, balance="0", payout=None):
    ledger = Ledger(storage)
    processor = WithdrawalProcessor(storage, ledger, settings, payout=payout)
    account = await IdentityStore(storage, settings).register(f"{uuid4().hex}@example.com", "pw", "Saver")
    if Decimal(balance) > 0:
        async with ledger.locked(account.id):
            ledger.credit(account.id, Decimal(balance))
    return processor, ledger, account


class TestRequestValidation:
    """Tests for rejected withdrawal requests."""

    @pytest.mark.asyncio
    async def test_insufficient_balance(self, storage, settings):
        """Balance 10, request 15: rejected and balance stays 10."""
        processor, ledger, account = await _setup(storage, settings, balance="10")

        with pytest.raises(InsufficientBalanceError):
            await processor.request(account.id, Decimal("15"), ADDRESS)

        assert ledger.get(account.id).balance == Decimal("10")
        assert storage.withdrawal_records == {}

    @pytest.mark.asyncio
    async def test_short_address(self, storage, settings):
        processor, ledger, account = await _setup(storage, settings, balance="10")

        with pytest.raises(InvalidAddressError):
            await processor.request(account.id, Decimal("5"), "short")

        assert ledger.get(account.id).balance == Decimal("10")

    @pytest.mark.asyncio
    async def test_empty_address(self, storage, settings):
        processor, ledger, account = await _setup(storage, settings, balance="10")

        with pytest.raises(InvalidAddressError):
            await processor.request(account.id, Decimal("5"), "")

    @pytest.mark.asyncio
    async def test_ten_character_address_accepted(self, storage, settings):
        processor, _, account = await _setup(storage, settings, balance="10")

        record, _ = await processor.request(account.id, Decimal("5"), "0123456789")

        assert record.address == "0123456789"
        await processor.shutdown()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount", ["0", "-1"])
    async def test_non_positive_amount(self, storage, settings, amount):
        processor, ledger, account = await _setup(storage, settings, balance="10")

        with pytest.raises(InvalidAmountError):
            await processor.request(account.id, Decimal(amount), ADDRESS)

        assert ledger.get(account.id).balance == Decimal("10")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount", ["NaN", "Infinity", "0.000000000000000000000000001"])
    async def test_unusable_amount(self, storage, settings, amount):
        processor, ledger, account = await _setup(storage, settings, balance="10")

        with pytest.raises(InvalidAmountError):
            await processor.request(account.id, Decimal(amount), ADDRESS)

        assert ledger.get(account.id).balance == Decimal("10")
        assert storage.withdrawal_records == {}

    @pytest.mark.asyncio
    async def test_balance_checked_before_address(self, storage, settings):
        processor, _, account = await _setup(storage, settings, balance="1")

        with pytest.raises(InsufficientBalanceError):
            await processor.request(account.id, Decimal("5"), "short")


class TestSettlement:
    """Tests for the pending → completed transition."""

    @pytest.mark.asyncio
    async def test_debit_then_settle(self, storage, settings):
        """Balance 50, withdraw 20: 30 immediately, pending; later completed, still 30."""
        processor, ledger, account = await _setup(storage, settings, balance="50")

        record, new_balance = await processor.request(account.id, Decimal("20"), ADDRESS)

        assert new_balance == Decimal("30")
        assert record.status == WithdrawalStatus.PENDING
        assert record.settled_at is None
        assert processor.pending_settlements == 1

        await asyncio.sleep(settings.settlement_delay_seconds * 6)

        settled = processor.get(record.id)
        assert settled.status == WithdrawalStatus.COMPLETED
        assert settled.settled_at is not None
        assert ledger.get(account.id).balance == Decimal("30")
        assert processor.pending_settlements == 0

    @pytest.mark.asyncio
    async def test_returned_record_is_a_snapshot(self, storage, settings):
        processor, _, account = await _setup(storage, settings, balance="50")
        record, _ = await processor.request(account.id, Decimal("20"), ADDRESS)

        await asyncio.sleep(settings.settlement_delay_seconds * 6)

        assert record.status == WithdrawalStatus.PENDING
        assert processor.get(record.id).status == WithdrawalStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_failed_payout_marks_failed(self, storage, settings):
        """A payout error fails the withdrawal; the debit is kept."""
        async def broken_payout(record):
            raise ConnectionError("payout gateway unreachable")

        processor, ledger, account = await _setup(storage, settings, balance="50", payout=broken_payout)
        record, _ = await processor.request(account.id, Decimal("20"), ADDRESS)

        await asyncio.sleep(settings.settlement_delay_seconds * 6)

        failed = processor.get(record.id)
        assert failed.status == WithdrawalStatus.FAILED
        assert failed.failure_reason == "payout gateway unreachable"
        assert ledger.get(account.id).balance == Decimal("30")

    @pytest.mark.asyncio
    async def test_settle_is_idempotent(self, storage, settings):
        processor, ledger, account = await _setup(
            storage, replace(settings, settlement_delay_seconds=60), balance="50",
        )
        record, _ = await processor.request(account.id, Decimal("20"), ADDRESS)

        first = await processor.settle(record.id, account.id)
        second = await processor.settle(record.id, account.id)

        assert first.status == second.status == WithdrawalStatus.COMPLETED
        assert first.settled_at == second.settled_at
        await processor.shutdown()

    @pytest.mark.asyncio
    async def test_shutdown_cancels_pending(self, storage, settings):
        processor, _, account = await _setup(
            storage, replace(settings, settlement_delay_seconds=60), balance="50",
        )
        record, _ = await processor.request(account.id, Decimal("20"), ADDRESS)

        await processor.shutdown()

        assert processor.pending_settlements == 0
        assert processor.get(record.id).status == WithdrawalStatus.PENDING


class TestListing:
    """Tests for withdrawal listings."""

    @pytest.mark.asyncio
    async def test_newest_first(self, storage, settings):
        processor, _, account = await _setup(storage, settings, balance="50")
        for amount in ("1", "2", "3"):
            await processor.request(account.id, Decimal(amount), ADDRESS)

        listing = processor.list_withdrawals(account.id)

        assert [w.amount for w in listing] == [Decimal("3"), Decimal("2"), Decimal("1")]
        await processor.shutdown()


class TestConcurrentWithdrawals:
    """Tests for withdrawals racing on one account."""

    @pytest.mark.asyncio
    async def test_never_overdraws(self, storage, settings):
        """Ten concurrent 10-unit withdrawals against 55: exactly five succeed."""
        processor, ledger, account = await _setup(storage, settings, balance="55")

        results = await asyncio.gather(
            *(processor.request(account.id, Decimal("10"), ADDRESS) for _ in range(10)),
            return_exceptions=True,
        )

        succeeded = [r for r in results if not isinstance(r, Exception)]
        failed = [r for r in results if isinstance(r, InsufficientBalanceError)]
        assert len(succeeded) == 5
        assert len(failed) == 5
        assert ledger.get(account.id).balance == Decimal("5")
        await processor.shutdown()


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
