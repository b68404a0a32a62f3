"""Tests for the cashier HTTP server.

Uses FastAPI's TestClient — no server process needed.
"""

import pytest

# Signed endpoints need real signatures
eth_account = pytest.importorskip("eth_account", reason="eth-account not installed")

from fastapi.testclient import TestClient

from cashier.server import app
from rakepool import errors
from rakepool.config import AdminDefaults, CashierConfig
from rakepool.errors import EscrowError
from rakepool.escrow import EscrowProgram
from rakepool.wallet import auth_headers, build_auth_message, encode_header_message, sign_auth_message

TEST_PRIVATE_KEY = "0x4c0883a69102937d6231471b5dbb6204fe512961708279f3a3e6d8b4f8e2c7e1"
BUY_IN = 1_000_000


@pytest.fixture
def program():
    """Fresh escrow program for each test."""
    return EscrowProgram()


@pytest.fixture
def settings():
    return CashierConfig(allow_faucet=True)


@pytest.fixture
def client(program, settings):
    """FastAPI test client backed by a fresh program."""
    import cashier.server as srv

    # Create a bare app without lifespan so it doesn't overwrite _program
    from fastapi import FastAPI

    test_app = FastAPI()
    # Copy all routes from the real app
    for route in app.routes:
        test_app.routes.append(route)
    test_app.add_exception_handler(EscrowError, srv.escrow_error_handler)

    srv._program = program
    srv._settings = settings
    srv._admin_defaults = None
    with TestClient(test_app) as c:
        yield c
    srv._program = None
    srv._settings = None
    srv._admin_defaults = None


@pytest.fixture
def admin():
    return eth_account.Account.from_key(TEST_PRIVATE_KEY)


@pytest.fixture
def creator():
    return eth_account.Account.create()


@pytest.fixture
def players():
    return [eth_account.Account.create() for _ in range(2)]


def _initialize(client, admin):
    resp = client.post(
        "/admin/initialize",
        json={"default_rake_bps": 500, "creator_share_pct": 70, "admin_share_pct": 30},
        headers=auth_headers(admin),
    )
    assert resp.status_code == 200, resp.text
    return resp.json()


def _create(client, creator, tournament_id="t1", **overrides):
    body = {"tournament_id": tournament_id, "buy_in": BUY_IN, "rake_bps": 500, "max_players": 2}
    body.update(overrides)
    return client.post("/tournaments", json=body, headers=auth_headers(creator))


def _fund(client, account, amount=BUY_IN):
    resp = client.post("/faucet", json={"address": account.address, "amount": amount})
    assert resp.status_code == 200, resp.text


# ======================================================================
# Auth Tests
# ======================================================================


class TestAuth:
    def test_missing_headers(self, client):
        resp = client.post(
            "/admin/initialize",
            json={"default_rake_bps": 500, "creator_share_pct": 70, "admin_share_pct": 30},
        )
        assert resp.status_code == 401

    def test_forged_signature(self, client, admin, creator):
        # Creator signs a message claiming to be the admin
        message = build_auth_message(admin.address)
        headers = {
            "X-Wallet-Address": admin.address,
            "X-Wallet-Message": encode_header_message(message),
            "X-Wallet-Signature": sign_auth_message(creator, message),
        }
        resp = client.post(
            "/admin/initialize",
            json={"default_rake_bps": 500, "creator_share_pct": 70, "admin_share_pct": 30},
            headers=headers,
        )
        assert resp.status_code == 401

    def test_stale_message(self, client, admin):
        headers = auth_headers(admin, timestamp_ms=1_000)
        resp = client.post("/tournaments/t1/join", headers=headers)
        assert resp.status_code == 401
        assert "expired" in resp.json()["detail"]


# ======================================================================
# Admin Tests
# ======================================================================


class TestAdmin:
    def test_initialize(self, client, admin):
        config = _initialize(client, admin)
        assert config["admin_authority"] == admin.address
        assert config["default_rake_bps"] == 500

        resp = client.get("/admin/config")
        assert resp.status_code == 200
        assert resp.json()["creator_rake_share_pct"] == 70

    def test_initialize_twice(self, client, admin):
        _initialize(client, admin)
        resp = client.post(
            "/admin/initialize",
            json={"default_rake_bps": 100, "creator_share_pct": 50, "admin_share_pct": 50},
            headers=auth_headers(admin),
        )
        assert resp.status_code == 400
        assert resp.json()["error"] == "AdminAlreadyInitialized"

    def test_config_before_initialize(self, client):
        resp = client.get("/admin/config")
        assert resp.status_code == 404
        assert resp.json()["error"] == "AdminNotInitialized"

    def test_rake_split_admin_only(self, client, admin, creator):
        _initialize(client, admin)
        resp = client.post(
            "/admin/rake-split",
            json={"creator_share_pct": 50, "admin_share_pct": 50},
            headers=auth_headers(creator),
        )
        assert resp.status_code == 403
        assert resp.json()["error"] == "Unauthorized"

        resp = client.post(
            "/admin/rake-split",
            json={"creator_share_pct": 50, "admin_share_pct": 50},
            headers=auth_headers(admin),
        )
        assert resp.status_code == 200
        assert resp.json()["creator_rake_share_pct"] == 50

    def test_invalid_split(self, client, admin):
        _initialize(client, admin)
        resp = client.post(
            "/admin/rake-split",
            json={"creator_share_pct": 90, "admin_share_pct": 20},
            headers=auth_headers(admin),
        )
        assert resp.status_code == 400
        assert resp.json()["error"] == "InvalidRakeSplit"

    def test_initialize_falls_back_to_config(self, client, admin):
        import cashier.server as srv

        srv._admin_defaults = AdminDefaults(default_rake_bps=250, creator_share_pct=60, admin_share_pct=40)
        resp = client.post("/admin/initialize", json={}, headers=auth_headers(admin))
        assert resp.status_code == 200, resp.text
        config = resp.json()
        assert config["default_rake_bps"] == 250
        assert config["creator_rake_share_pct"] == 60
        assert config["admin_rake_share_pct"] == 40

    def test_request_fields_override_config(self, client, admin):
        import cashier.server as srv

        srv._admin_defaults = AdminDefaults(default_rake_bps=250, creator_share_pct=60, admin_share_pct=40)
        resp = client.post(
            "/admin/initialize", json={"default_rake_bps": 100}, headers=auth_headers(admin)
        )
        config = resp.json()
        assert config["default_rake_bps"] == 100
        assert config["creator_rake_share_pct"] == 60

    def test_initialize_without_config_uses_builtin_defaults(self, client, admin):
        resp = client.post("/admin/initialize", json={}, headers=auth_headers(admin))
        config = resp.json()
        assert (config["default_rake_bps"], config["creator_rake_share_pct"]) == (500, 70)


# ======================================================================
# Error Mapping Tests
# ======================================================================


class TestErrorMapping:
    def test_every_category_has_a_status(self):
        import cashier.server as srv

        assert set(srv.CATEGORY_STATUS) == set(errors.CATEGORIES)

    @pytest.mark.parametrize(
        "error, status",
        [
            (errors.InvalidRakeSplit(), 400),
            (errors.RakeTooHigh(), 400),
            (errors.Unauthorized(), 403),
            (errors.TournamentNotWaiting(), 409),
            (errors.PlayerAlreadyJoined(), 409),
            (errors.InsufficientFunds(), 402),
            (errors.TournamentNotFound(), 404),
            (errors.AdminNotInitialized(), 404),
        ],
    )
    def test_status_for(self, error, status):
        import cashier.server as srv

        assert srv.status_for(error) == status


# ======================================================================
# Tournament Tests
# ======================================================================


class TestTournaments:
    def test_create_and_get(self, client, creator):
        resp = _create(client, creator, privacy_mode="Private", tournament_type="Bounty")
        assert resp.status_code == 200, resp.text
        data = resp.json()
        assert data["creator"] == creator.address
        assert data["status"] == "Waiting"
        assert data["privacy_mode"] == "Private"
        assert data["tournament_type"] == "Bounty"
        assert data["space"] == 169 + 64 * 2
        assert data["custody_balance"] == 0

        resp = client.get("/tournaments/t1")
        assert resp.status_code == 200
        assert resp.json()["tournament_id"] == "t1"

    def test_get_missing(self, client):
        resp = client.get("/tournaments/nope")
        assert resp.status_code == 404
        assert resp.json()["error"] == "TournamentNotFound"

    def test_rake_too_high(self, client, creator):
        resp = _create(client, creator, rake_bps=5000)
        assert resp.status_code == 400
        assert resp.json()["error"] == "RakeTooHigh"

    def test_duplicate_id(self, client, creator):
        _create(client, creator)
        resp = _create(client, creator)
        assert resp.status_code == 409
        assert resp.json()["error"] == "TournamentAlreadyExists"

    def test_unknown_enum_rejected(self, client, creator):
        resp = _create(client, creator, blind_structure="Glacial")
        assert resp.status_code == 422

    def test_join_without_funds(self, client, admin, creator, players):
        _initialize(client, admin)
        _create(client, creator)
        resp = client.post("/tournaments/t1/join", headers=auth_headers(players[0]))
        assert resp.status_code == 402
        assert resp.json()["error"] == "InsufficientFunds"

    def test_join_twice(self, client, admin, creator, players):
        _initialize(client, admin)
        _create(client, creator, max_players=3)
        _fund(client, players[0], 2 * BUY_IN)
        client.post("/tournaments/t1/join", headers=auth_headers(players[0]))
        resp = client.post("/tournaments/t1/join", headers=auth_headers(players[0]))
        assert resp.status_code == 409
        assert resp.json()["error"] == "PlayerAlreadyJoined"

    def test_full_lifecycle(self, client, program, admin, creator, players):
        _initialize(client, admin)
        _create(client, creator)
        for player in players:
            _fund(client, player)
            resp = client.post("/tournaments/t1/join", headers=auth_headers(player))
            assert resp.status_code == 200, resp.text

        data = client.get("/tournaments/t1").json()
        assert data["status"] == "InProgress"
        assert data["total_pot"] == 1_900_000
        assert data["custody_balance"] == 2 * BUY_IN

        winner = players[1].address
        resp = client.post(
            "/tournaments/t1/distribute",
            json={"winner": winner.lower()},
            headers=auth_headers(creator),
        )
        assert resp.status_code == 200, resp.text
        assert resp.json()["status"] == "Completed"
        assert resp.json()["winners"] == [winner]

        balance = client.get(f"/balances/{winner}").json()
        assert balance["balance"] == 1_900_000

        resp = client.post("/tournaments/t1/withdraw-rake", headers=auth_headers(creator))
        assert resp.json() == {"tournament_id": "t1", "amount": 70_000}
        resp = client.post("/tournaments/t1/withdraw-admin-rake", headers=auth_headers(admin))
        assert resp.json() == {"tournament_id": "t1", "amount": 30_000}

        resp = client.post("/tournaments/t1/withdraw-rake", headers=auth_headers(creator))
        assert resp.status_code == 402
        assert resp.json()["error"] == "NoRakeToWithdraw"

        stats = client.get("/admin/stats").json()
        assert stats["total_rake_collected"] == 100_000
        assert stats["by_status"]["Completed"] == 1
        assert program.custody_balance("t1") == 0

    def test_distribute_by_stranger(self, client, admin, creator, players):
        _initialize(client, admin)
        _create(client, creator)
        for player in players:
            _fund(client, player)
            client.post("/tournaments/t1/join", headers=auth_headers(player))
        resp = client.post(
            "/tournaments/t1/distribute",
            json={"winner": players[0].address},
            headers=auth_headers(players[0]),
        )
        assert resp.status_code == 403

    def test_distribute_bad_winner(self, client, creator):
        _create(client, creator)
        resp = client.post(
            "/tournaments/t1/distribute",
            json={"winner": "somebody"},
            headers=auth_headers(creator),
        )
        assert resp.status_code == 400

    def test_leave_and_cancel(self, client, admin, creator, players):
        _initialize(client, admin)
        _create(client, creator, max_players=4)
        for player in players:
            _fund(client, player)
            client.post("/tournaments/t1/join", headers=auth_headers(player))

        resp = client.post("/tournaments/t1/leave", headers=auth_headers(players[0]))
        assert resp.status_code == 200
        assert resp.json()["players_joined"] == 1

        resp = client.post("/tournaments/t1/cancel", headers=auth_headers(creator))
        assert resp.status_code == 200
        assert resp.json()["status"] == "Cancelled"
        assert resp.json()["refunds"] == {players[1].address: BUY_IN}

        for player in players:
            assert client.get(f"/balances/{player.address}").json()["balance"] == BUY_IN

        resp = client.post("/tournaments/t1/cancel", headers=auth_headers(creator))
        assert resp.status_code == 409

    def test_list_by_status(self, client, admin, creator, players):
        _initialize(client, admin)
        _create(client, creator, tournament_id="a")
        _create(client, creator, tournament_id="b")
        client.post("/tournaments/b/cancel", headers=auth_headers(creator))

        data = client.get("/tournaments").json()
        assert data["count"] == 2

        data = client.get("/tournaments", params={"status": "Waiting"}).json()
        assert [t["tournament_id"] for t in data["tournaments"]] == ["a"]


# ======================================================================
# Ledger Tests
# ======================================================================


class TestLedgerEndpoints:
    def test_faucet_disabled(self, client, settings, players):
        settings.allow_faucet = False
        resp = client.post("/faucet", json={"address": players[0].address, "amount": 10})
        assert resp.status_code == 403

    def test_faucet_rejects_bad_input(self, client, players):
        resp = client.post("/faucet", json={"address": players[0].address, "amount": 0})
        assert resp.status_code == 400
        resp = client.post("/faucet", json={"address": "nope", "amount": 10})
        assert resp.status_code == 400

    def test_balance_checksums_address(self, client, players):
        _fund(client, players[0], 42)
        resp = client.get(f"/balances/{players[0].address.lower()}")
        assert resp.json() == {"address": players[0].address, "balance": 42}

    def test_health(self, client, admin):
        resp = client.get("/health")
        assert resp.json() == {"status": "ok", "initialized": False, "tournaments": 0}
        _initialize(client, admin)
        assert client.get("/health").json()["initialized"] is True
