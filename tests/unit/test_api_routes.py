"""HTTP-level tests: routing, auth guards and error envelopes.

Dependencies are overridden so no database or Redis is touched.
"""

from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy.exc import OperationalError

from src.main import app
from src.pm_account.application.service import PointsApplicationService
from src.pm_common.database import get_db_session
from src.pm_common.datetime_utils import utc_now
from src.pm_common.enums import DisputeOutcome, DisputeVoteChoice, MarketStatus
from src.pm_common.errors import (
    ActiveDisputeExistsError,
    AlreadyResolvedError,
    InsufficientBalanceError,
)
from src.pm_dispute.application.service import get_dispute_arbiter
from src.pm_dispute.domain.models import Dispute, DisputeResult, DisputeVote
from src.pm_gateway.auth.dependencies import CurrentUser, get_current_user
from src.pm_settlement.application.service import get_settlement_engine
from src.pm_settlement.domain.models import Eligibility, SettlementReport
from src.pm_trade.application.service import get_trade_service


async def _fake_session():
    yield AsyncMock()


def _login(role: str = "user") -> None:
    app.dependency_overrides[get_current_user] = lambda: CurrentUser(id="u1", role=role)
    app.dependency_overrides[get_db_session] = _fake_session


async def test_health(client) -> None:
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


async def test_missing_token_is_401(client) -> None:
    resp = await client.get("/api/v1/points/balance")
    assert resp.status_code == 401


class TestTrades:
    async def test_business_error_envelope(self, client) -> None:
        _login()
        service = AsyncMock()
        service.place_trade.side_effect = InsufficientBalanceError(500, 20)
        app.dependency_overrides[get_trade_service] = lambda: service

        resp = await client.post(
            "/api/v1/trades",
            json={"market_id": "m1", "outcome_id": "o1", "stake_points": 500},
        )

        assert resp.status_code == 422
        body = resp.json()
        assert body["code"] == 2001
        assert body["data"] is None
        assert body["request_id"] == resp.headers["X-Request-ID"]

    async def test_store_error_maps_to_503(self, client) -> None:
        _login()
        service = AsyncMock()
        service.place_trade.side_effect = OperationalError("SELECT 1", {}, Exception("gone"))
        app.dependency_overrides[get_trade_service] = lambda: service

        resp = await client.post(
            "/api/v1/trades",
            json={"market_id": "m1", "outcome_id": "o1", "stake_points": 5},
        )

        assert resp.status_code == 503
        assert resp.json()["code"] == 9003
        assert "gone" not in resp.json()["message"]

    async def test_request_body_validation(self, client) -> None:
        _login()
        app.dependency_overrides[get_trade_service] = lambda: AsyncMock()
        resp = await client.post("/api/v1/trades", json={"market_id": "m1"})
        assert resp.status_code == 422


class TestPoints:
    async def test_balance_and_claim(self, client, points_repo) -> None:
        _login()
        with patch(
            "src.pm_account.api.router._service", PointsApplicationService(repo=points_repo)
        ):
            claim = await client.post("/api/v1/points/claim-monthly")
            again = await client.post("/api/v1/points/claim-monthly")
            balance = await client.get("/api/v1/points/balance")

        assert claim.status_code == 200
        assert again.status_code == 409
        assert again.json()["code"] == 2002
        assert balance.json()["data"]["balance"] == claim.json()["data"]["granted"]


class TestAdminSettlement:
    async def test_non_admin_forbidden(self, client) -> None:
        _login(role="user")
        app.dependency_overrides[get_settlement_engine] = lambda: AsyncMock()

        resp = await client.post(
            "/api/v1/admin/markets/m1/resolve", json={"winning_outcome_id": "o1"}
        )

        assert resp.status_code == 403
        assert resp.json()["code"] == 9005

    async def test_resolve_returns_report(self, client) -> None:
        _login(role="admin")
        engine = AsyncMock()
        engine.resolve_market.return_value = SettlementReport(
            market_id="m1",
            resolution_id="r1",
            winning_outcome_id="o1",
            positions_scanned=3,
            payouts_applied=2,
            points_paid=30,
            pages=1,
            outcomes_liquidated=["o2"],
            settled_at=utc_now(),
        )
        app.dependency_overrides[get_settlement_engine] = lambda: engine

        resp = await client.post(
            "/api/v1/admin/markets/m1/resolve",
            json={"winning_outcome_id": "o1", "notes": "official"},
        )

        assert resp.status_code == 200
        assert resp.json()["data"]["points_paid"] == 30
        cmd = engine.resolve_market.await_args.args[1]
        assert cmd.resolved_by == "u1"
        assert cmd.source == "MANUAL"

    async def test_already_resolved_is_409(self, client) -> None:
        _login(role="admin")
        engine = AsyncMock()
        engine.resolve_market.side_effect = AlreadyResolvedError("m1")
        app.dependency_overrides[get_settlement_engine] = lambda: engine

        resp = await client.post(
            "/api/v1/admin/markets/m1/resolve", json={"winning_outcome_id": "o1"}
        )

        assert resp.status_code == 409
        assert resp.json()["code"] == 6002

    @pytest.mark.parametrize("source", ["MANUAL", "ORACLE", "COMMUNITY"])
    async def test_source_accepted(self, client, source: str) -> None:
        _login(role="admin")
        engine = AsyncMock()
        engine.resolve_market.return_value = SettlementReport("m1", "r1", "o1")
        app.dependency_overrides[get_settlement_engine] = lambda: engine

        resp = await client.post(
            "/api/v1/admin/markets/m1/resolve",
            json={"winning_outcome_id": "o1", "source": source, "oracle_tx_hash": "0x1"},
        )

        assert resp.status_code == 200

    async def test_eligibility(self, client) -> None:
        _login(role="admin")
        engine = AsyncMock()
        engine.check_eligibility.return_value = Eligibility(
            "m1", False, [f"Market must be CLOSED (status={MarketStatus.OPEN.value})"]
        )
        app.dependency_overrides[get_settlement_engine] = lambda: engine

        resp = await client.get("/api/v1/admin/markets/m1/eligibility")

        assert resp.status_code == 200
        assert resp.json()["data"]["eligible"] is False


class TestDisputes:
    async def test_open_dispute_created(self, client) -> None:
        _login()
        arbiter = AsyncMock()
        arbiter.open_dispute.return_value = Dispute(
            "d1", "m1", "r1", "u1", "Wrong source used", stake=1000, opened_at=utc_now()
        )
        app.dependency_overrides[get_dispute_arbiter] = lambda: arbiter

        resp = await client.post(
            "/api/v1/markets/m1/disputes", json={"reason": "Wrong source used"}
        )

        assert resp.status_code == 201
        assert resp.json()["data"]["status"] == "OPEN"
        assert arbiter.open_dispute.await_args.args[1:] == ("m1", "u1", "Wrong source used", None)

    async def test_active_dispute_is_409(self, client) -> None:
        _login()
        arbiter = AsyncMock()
        arbiter.open_dispute.side_effect = ActiveDisputeExistsError("m1")
        app.dependency_overrides[get_dispute_arbiter] = lambda: arbiter

        resp = await client.post(
            "/api/v1/markets/m1/disputes", json={"reason": "Wrong source used"}
        )

        assert resp.status_code == 409
        assert resp.json()["code"] == 7003

    async def test_vote_choice_validated(self, client) -> None:
        _login()
        app.dependency_overrides[get_dispute_arbiter] = lambda: AsyncMock()
        resp = await client.post("/api/v1/disputes/d1/votes", json={"vote": "MAYBE"})
        assert resp.status_code == 422

    async def test_cast_vote(self, client) -> None:
        _login()
        arbiter = AsyncMock()
        arbiter.cast_vote.return_value = DisputeVote(1, "d1", "u1", "OVERTURN", 4)
        app.dependency_overrides[get_dispute_arbiter] = lambda: arbiter

        resp = await client.post("/api/v1/disputes/d1/votes", json={"vote": "OVERTURN"})

        assert resp.status_code == 201
        assert resp.json()["data"]["weight"] == 4
        assert arbiter.cast_vote.await_args.args[3] == DisputeVoteChoice.OVERTURN

    async def test_resolve_requires_admin(self, client) -> None:
        _login(role="user")
        app.dependency_overrides[get_dispute_arbiter] = lambda: AsyncMock()

        resp = await client.post(
            "/api/v1/admin/disputes/d1/resolve", json={"outcome": "DISMISSED"}
        )

        assert resp.status_code == 403

    async def test_admin_resolves(self, client) -> None:
        _login(role="admin")
        arbiter = AsyncMock()
        arbiter.resolve_dispute.return_value = DisputeResult(
            dispute=Dispute("d1", "m1", "r1", "u2", "Wrong source used", stake=1000,
                            status="RESOLVED", outcome="OVERTURNED"),
            market_status="CLOSED",
            rewards_applied=1,
            points_rewarded=1500,
        )
        app.dependency_overrides[get_dispute_arbiter] = lambda: arbiter

        resp = await client.post(
            "/api/v1/admin/disputes/d1/resolve", json={"outcome": "OVERTURNED"}
        )

        assert resp.status_code == 200
        assert resp.json()["data"]["market_status"] == "CLOSED"
        args = arbiter.resolve_dispute.await_args.args
        assert args[2] == DisputeOutcome.OVERTURNED
        assert args[3] == "u1"


async def test_inbound_request_id_is_echoed(client) -> None:
    resp = await client.get("/health", headers={"X-Request-ID": "edge-7f3a9c21"})
    assert resp.headers["X-Request-ID"] == "edge-7f3a9c21"


async def test_garbage_request_id_is_replaced(client) -> None:
    resp = await client.get("/health", headers={"X-Request-ID": "<script>"})
    assert resp.headers["X-Request-ID"].startswith("req_")
