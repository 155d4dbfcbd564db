"""Unit tests for PointsLedger against the in-memory repository."""

import asyncio

import pytest

from src.pm_account.domain.models import PointsCredit
from src.pm_common.enums import PointsReason
from src.pm_common.errors import InsufficientBalanceError, ValidationError

BET = PointsReason.BET_PLACED.value
REFUND = PointsReason.BET_REFUND.value
WIN = PointsReason.MARKET_RESOLUTION_WIN.value


class TestDebit:
    async def test_debit_reduces_balance(self, db, points, points_repo) -> None:
        points_repo.grant("u1", 300)

        entry = await points.debit(db, "u1", 120, BET, "trade", "t1")

        assert entry.delta == -120
        assert entry.balance_after == 180
        assert await points.balance(db, "u1") == 180

    async def test_insufficient_balance_writes_nothing(self, db, points, points_repo) -> None:
        points_repo.grant("u1", 100)

        with pytest.raises(InsufficientBalanceError) as exc_info:
            await points.debit(db, "u1", 101, BET, "trade", "t1")

        assert "available 100" in exc_info.value.message
        assert await points.balance(db, "u1") == 100
        assert points_repo.reasons_for("u1") == [PointsReason.MONTHLY_GRANT.value]

    async def test_exact_balance_can_be_spent(self, db, points, points_repo) -> None:
        points_repo.grant("u1", 500)
        await points.debit(db, "u1", 500, BET, "trade", "t1")
        assert await points.balance(db, "u1") == 0

    @pytest.mark.parametrize("amount", [0, -1])
    async def test_non_positive_amount_rejected(self, db, points, amount: int) -> None:
        with pytest.raises(ValidationError):
            await points.debit(db, "u1", amount, BET)

    async def test_concurrent_debits_never_overdraw(self, db, points, points_repo) -> None:
        points_repo.grant("u1", 500)

        results = await asyncio.gather(
            *(points.debit(db, "u1", 100, BET, "trade", f"t{i}") for i in range(8)),
            return_exceptions=True,
        )

        failures = [r for r in results if isinstance(r, InsufficientBalanceError)]
        assert len(failures) == 3
        assert await points.balance(db, "u1") == 0
        assert all(e.balance_after >= 0 for e in points_repo.entries)


class TestCredit:
    async def test_duplicate_reference_credited_once(self, db, points) -> None:
        first = await points.credit(db, "u1", 40, WIN, "position", "7")
        second = await points.credit(db, "u1", 40, WIN, "position", "7")

        assert first is not None and first.balance_after == 40
        assert second is None
        assert await points.balance(db, "u1") == 40

    async def test_unreferenced_credits_always_append(self, db, points) -> None:
        await points.credit(db, "u1", 10, PointsReason.MONTHLY_GRANT.value)
        await points.credit(db, "u1", 10, PointsReason.MONTHLY_GRANT.value)
        assert await points.balance(db, "u1") == 20

    async def test_bulk_credit_returns_only_applied(self, db, points) -> None:
        await points.credit(db, "u2", 5, WIN, "position", "2")
        credits = [
            PointsCredit("u1", 10, WIN, "position", "1"),
            PointsCredit("u2", 5, WIN, "position", "2"),
            PointsCredit("u3", 0, WIN, "position", "3"),
        ]

        applied = await points.bulk_credit(db, credits)

        assert [e.user_id for e in applied] == ["u1"]
        assert await points.balance(db, "u3") == 0


class TestRefund:
    async def test_refund_returns_net_debit_once(self, db, points, points_repo) -> None:
        points_repo.grant("u1", 200)
        await points.debit(db, "u1", 50, BET, "trade", "t1")

        first = await points.refund(db, "u1", "trade", "t1", REFUND)
        second = await points.refund(db, "u1", "trade", "t1", REFUND)

        assert first is not None and first.delta == 50
        assert second is None
        assert await points.balance(db, "u1") == 200

    async def test_refund_without_debit_is_noop(self, db, points) -> None:
        assert await points.refund(db, "u1", "trade", "missing", REFUND) is None
        assert await points.balance(db, "u1") == 0
