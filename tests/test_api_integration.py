"""
Integration tests for the Lending Ledger API
Tests end-to-end workflows using FastAPI TestClient
"""

from datetime import timedelta

import jwt
import pytest
from fastapi.testclient import TestClient

import lending_ledger.api.auth
from lending_ledger.access import Role
from lending_ledger.api import app
from lending_ledger.api.auth import LendingSystem, create_access_token
from lending_ledger.config import LedgerConfig
from lending_ledger.interest import SECONDS_PER_YEAR

from conftest import FakeClock


TEN_PERCENT = str(10 ** 17)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def system(clock):
    return LendingSystem(config=LedgerConfig(), clock=clock)


@pytest.fixture
def auth(system):
    """Build Authorization headers for an account"""
    def headers_for(account):
        return {"Authorization": f"Bearer {create_access_token(account, system.config)}"}
    return headers_for


@pytest.fixture
def client(system):
    """Test client bound to a fresh lending system"""
    original_system = lending_ledger.api.auth.lending_system
    lending_ledger.api.auth.lending_system = system

    client = TestClient(app)

    yield client
    lending_ledger.api.auth.lending_system = original_system


@pytest.fixture
def funded_client(client, auth):
    """Client where the ledger holds liquidity and alice holds and approved tokens"""
    for symbol in ("USDL", "RWD"):
        r = client.post(f"/tokens/{symbol}/mint", json={"account": "ledger", "amount": str(10 ** 24)}, headers=auth("owner"))
        assert r.status_code == 200
    for symbol in ("USDL", "COLL"):
        client.post(f"/tokens/{symbol}/mint", json={"account": "alice", "amount": str(10 ** 24)}, headers=auth("owner"))
        client.post(f"/tokens/{symbol}/approve", json={"amount": str(10 ** 24)}, headers=auth("alice"))
    client.post("/tokens/RWD/mint", json={"account": "owner", "amount": str(10 ** 24)}, headers=auth("owner"))
    client.post("/tokens/RWD/approve", json={"amount": str(10 ** 24)}, headers=auth("owner"))
    return client


class TestHealthEndpoints:
    """Test basic health and root endpoints"""

    def test_health(self, client):
        r = client.get("/health")
        assert r.status_code == 200
        assert r.json()["status"] == "healthy"

    def test_root(self, client):
        r = client.get("/")
        assert r.status_code == 200
        data = r.json()
        assert data["name"] == "Lending Ledger API"
        assert "loans" in data["endpoints"]

    def test_accounting_starts_balanced(self, client):
        r = client.get("/accounting")
        data = r.json()
        assert data["accounting_mode"] == "legacy"
        assert data["totals"]["total_lent"] == "0"
        assert data["reconciliation"]["balanced"] is True


class TestCallerIdentity:
    """Test bearer token authentication"""

    def test_missing_token(self, client):
        r = client.post("/collateral/deposit", json={"amount": "1"})
        assert r.status_code == 401

    def test_account_header_is_not_identity(self, client):
        r = client.post("/tokens/USDL/mint", json={"account": "alice", "amount": "1"},
                        headers={"X-Account": "owner"})
        assert r.status_code == 401

        r = client.get("/tokens/USDL/balances/alice")
        assert r.json()["balance"] == "0"

    def test_forged_token(self, client):
        forged = jwt.encode({"sub": "owner"}, "attacker-chosen-secret-of-sufficient-length", algorithm="HS256")
        r = client.post("/tokens/USDL/mint", json={"account": "alice", "amount": "1"},
                        headers={"Authorization": f"Bearer {forged}"})
        assert r.status_code == 401
        assert r.json()["detail"] == "Invalid token"

    def test_expired_token(self, client, system):
        token = create_access_token("owner", system.config, expires_in=timedelta(seconds=-1))
        r = client.post("/tokens/USDL/mint", json={"account": "alice", "amount": "1"},
                        headers={"Authorization": f"Bearer {token}"})
        assert r.status_code == 401
        assert r.json()["detail"] == "Token expired"

    def test_token_without_subject(self, client, system):
        token = jwt.encode({"role": "owner"}, system.config.jwt_secret, algorithm=system.config.jwt_algorithm)
        r = client.post("/collateral/deposit", json={"amount": "1"},
                        headers={"Authorization": f"Bearer {token}"})
        assert r.status_code == 401

    def test_valid_token_for_other_account(self, client, auth):
        r = client.post("/tokens/USDL/mint", json={"account": "alice", "amount": "1"}, headers=auth("alice"))
        assert r.status_code == 403

        r = client.post("/tokens/USDL/mint", json={"account": "alice", "amount": "1"}, headers=auth("owner"))
        assert r.status_code == 200

    def test_non_integer_amount(self, client, auth):
        r = client.post("/collateral/deposit", json={"amount": "1.5"}, headers=auth("alice"))
        assert r.status_code == 422

    def test_non_ascii_digit_amount(self, client, auth):
        r = client.post("/collateral/deposit", json={"amount": "²"}, headers=auth("alice"))
        assert r.status_code == 422

        r = client.post("/loans", json={
            "amount": "١٠", "collateral_amount": "1", "interest_rate": TEN_PERCENT
        }, headers=auth("alice"))
        assert r.status_code == 422


class TestCollateralFlow:
    """End-to-end collateral tests"""

    def test_deposit_and_withdraw(self, funded_client, auth):
        r = funded_client.post("/collateral/deposit", json={"amount": "1000"}, headers=auth("alice"))
        assert r.status_code == 200
        assert r.json()["collateral"]["amount"] == "1000"

        r = funded_client.post("/collateral/withdraw", json={"amount": "400"}, headers=auth("alice"))
        assert r.status_code == 200
        assert r.json()["collateral"]["amount"] == "600"

        r = funded_client.get("/collateral/alice")
        assert r.json()["collateral"]["amount"] == "600"

    def test_withdraw_too_much(self, funded_client, auth):
        r = funded_client.post("/collateral/withdraw", json={"amount": "1"}, headers=auth("alice"))
        assert r.status_code == 400
        assert r.json()["detail"]["error"] == "InsufficientCollateral"

    def test_deposit_without_allowance(self, client, auth):
        r = client.post("/collateral/deposit", json={"amount": "10"}, headers=auth("alice"))
        assert r.status_code == 402
        assert r.json()["detail"]["error"] == "TransferFailed"

    def test_claim_interest(self, funded_client, clock, auth):
        funded_client.post("/collateral/deposit", json={"amount": str(10 ** 21)}, headers=auth("alice"))
        clock.advance(SECONDS_PER_YEAR)

        pending = funded_client.get("/collateral/alice").json()["pending_interest"]
        r = funded_client.post("/collateral/claim-interest", headers=auth("alice"))

        assert r.status_code == 200
        assert r.json()["claimed"] == pending
        assert int(pending) > 0
        balance = funded_client.get("/tokens/RWD/balances/alice").json()["balance"]
        assert balance == pending


class TestLoanFlow:
    """End-to-end loan tests"""

    def test_take_and_repay(self, funded_client, clock, auth):
        r = funded_client.post("/loans", json={
            "amount": "1000",
            "collateral_amount": "500",
            "interest_rate": TEN_PERCENT
        }, headers=auth("alice"))
        assert r.status_code == 201
        assert r.json()["loan"]["amount"] == "1000"

        clock.advance(SECONDS_PER_YEAR)
        r = funded_client.get("/loans/alice/debt")
        assert r.json()["total_debt"] == "1098"

        r = funded_client.post("/loans/repay", json={"amount": "1000"}, headers=auth("alice"))
        assert r.status_code == 200

        r = funded_client.get("/loans/alice")
        assert r.json()["active"] is False

    def test_invalid_rate(self, funded_client, auth):
        r = funded_client.post("/loans", json={
            "amount": "1000",
            "collateral_amount": "500",
            "interest_rate": str(10 ** 18 + 1)
        }, headers=auth("alice"))
        assert r.status_code == 400
        assert r.json()["detail"]["error"] == "InvalidInput"

    def test_repay_without_loan(self, funded_client, auth):
        r = funded_client.post("/loans/repay", json={"amount": "1"}, headers=auth("alice"))
        assert r.status_code == 400
        assert r.json()["detail"]["error"] == "RepayExceedsLoan"

    def test_unknown_account(self, client):
        r = client.get("/loans/nobody")
        assert r.status_code == 200
        assert r.json()["active"] is False
        assert r.json()["loan"]["amount"] == "0"


class TestAdminFlow:
    """End-to-end administrative tests"""

    def test_distribute_rewards(self, funded_client, auth):
        r = funded_client.post("/admin/rewards", json={"amount": "1000"}, headers=auth("owner"))
        assert r.status_code == 200
        assert r.json()["accounting"]["total_rewards"] == "1000"

    def test_distribute_rewards_forbidden(self, funded_client, auth):
        r = funded_client.post("/admin/rewards", json={"amount": "1000"}, headers=auth("alice"))
        assert r.status_code == 403

    def test_mint_forbidden(self, client, auth):
        r = client.post("/tokens/USDL/mint", json={"account": "alice", "amount": "1"}, headers=auth("alice"))
        assert r.status_code == 403

    def test_unknown_token(self, client):
        r = client.get("/tokens/XYZ/balances/alice")
        assert r.status_code == 404

    def test_governed_rate_change(self, funded_client, system, clock, auth):
        system.access.grant_role("owner", Role.PROPOSER, "prop")
        system.access.grant_role("owner", Role.EXECUTOR, "exec")
        funded_client.post("/loans", json={
            "amount": "1000", "collateral_amount": "500", "interest_rate": TEN_PERCENT
        }, headers=auth("alice"))

        r = funded_client.post("/admin/governance/operations", json={
            "action": "set_interest_rate",
            "kwargs": {"account": "alice", "interest_rate": 2 * 10 ** 17}
        }, headers=auth("prop"))
        assert r.status_code == 200
        operation_id = r.json()["id"]

        r = funded_client.post(f"/admin/governance/operations/{operation_id}/execute", headers=auth("exec"))
        assert r.status_code == 400

        clock.advance(system.config.timelock_min_delay_seconds)
        r = funded_client.post(f"/admin/governance/operations/{operation_id}/execute", headers=auth("exec"))
        assert r.status_code == 200
        assert r.json()["state"] == "done"

        r = funded_client.get("/loans/alice")
        assert r.json()["loan"]["interest_rate"] == str(2 * 10 ** 17)

    def test_unknown_operation(self, client):
        r = client.get("/admin/governance/operations/missing")
        assert r.status_code == 404

    def test_list_operations_bad_state(self, client):
        r = client.get("/admin/governance/operations", params={"state": "bogus"})
        assert r.status_code == 400
