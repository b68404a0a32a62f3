"""
cashier/server.py - FastAPI front door for the rakepool escrow program.

Endpoints:
    POST   /admin/initialize                     Create the AdminConfig singleton (signed)
    GET    /admin/config                         Current rake policy + counters
    POST   /admin/rake-split                     Change the split for future joins (signed)
    GET    /admin/stats                          Platform rake totals and tournament counts
    POST   /tournaments                          Create a tournament escrow (signed)
    GET    /tournaments                          List tournaments (?status=Waiting)
    GET    /tournaments/{id}                     Tournament record + custody balance
    POST   /tournaments/{id}/join                Deposit buy-in and take a seat (signed)
    POST   /tournaments/{id}/leave               Give up a seat before start (signed)
    POST   /tournaments/{id}/distribute          Pay the pot to the winner (signed)
    POST   /tournaments/{id}/withdraw-rake       Creator rake withdrawal (signed)
    POST   /tournaments/{id}/withdraw-admin-rake Admin rake withdrawal (signed)
    POST   /tournaments/{id}/cancel              Cancel and refund everyone (signed)
    GET    /balances/{address}                   Ledger balance
    POST   /faucet                               Mint test funds (only if enabled)
    GET    /health                               Server health check

"Signed" endpoints need X-Wallet-Address / X-Wallet-Message /
X-Wallet-Signature headers (see rakepool.wallet.auth_headers). The cashier
verifies them and passes the recovered address to the escrow core; the core
itself never sees signatures.
"""

import logging
from contextlib import asynccontextmanager
from typing import Any

from fastapi import Depends, FastAPI, Header, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from rakepool import errors
from rakepool.config import AdminDefaults, CashierConfig, apply_env_overrides, load_config
from rakepool.errors import EscrowError
from rakepool.escrow import EscrowProgram
from rakepool.records import (
    BlindStructure,
    PrivacyMode,
    TournamentEscrow,
    TournamentStatus,
    TournamentType,
)
from rakepool.wallet import (
    WalletAuthError,
    decode_header_message,
    normalize_address,
    verify_auth,
)

logger = logging.getLogger(__name__)

# Error category -> HTTP status
CATEGORY_STATUS = {
    errors.CONFIGURATION: 400,
    errors.POLICY: 400,
    errors.STATE: 409,
    errors.AUTHORIZATION: 403,
    errors.MEMBERSHIP: 409,
    errors.FUNDS: 402,
}
assert set(CATEGORY_STATUS) == set(errors.CATEGORIES), "every error category needs an HTTP status"

# Missing records read as 404 regardless of category
NOT_FOUND_ERRORS = (errors.TournamentNotFound, errors.AdminNotInitialized)


def status_for(exc: EscrowError) -> int:
    if isinstance(exc, NOT_FOUND_ERRORS):
        return 404
    return CATEGORY_STATUS[exc.category]


# Global program + settings, set during lifespan (or directly by tests)
_program: EscrowProgram | None = None
_settings: CashierConfig | None = None
_admin_defaults: AdminDefaults | None = None


def get_program() -> EscrowProgram:
    assert _program is not None, "Escrow program not initialized"
    return _program


def get_settings() -> CashierConfig:
    return _settings if _settings is not None else CashierConfig()


def get_admin_defaults() -> AdminDefaults:
    return _admin_defaults if _admin_defaults is not None else AdminDefaults()


@asynccontextmanager
async def lifespan(app: FastAPI):
    global _program, _settings, _admin_defaults
    config = load_config()
    cashier_config = getattr(app.state, "cashier_config", None) or config.cashier
    _settings = apply_env_overrides(cashier_config)
    _admin_defaults = config.admin
    _program = EscrowProgram()
    _log_startup_config()

    yield
    _program = None
    _settings = None
    _admin_defaults = None


def _log_startup_config():
    """Log cashier configuration on startup so operators can verify it."""
    settings = get_settings()
    logger.info("=" * 50)
    logger.info("Cashier startup config:")
    logger.info(f"  Auth max age: {settings.auth_max_age_seconds}s")
    defaults = get_admin_defaults()
    logger.info(
        f"  Admin defaults: {defaults.default_rake_bps} bps, "
        f"creator {defaults.creator_share_pct}% / admin {defaults.admin_share_pct}%"
    )
    if settings.allow_faucet:
        logger.warning("  Faucet: ENABLED (test funds can be minted, dev only)")
    else:
        logger.info("  Faucet: disabled")
    logger.info("  AdminConfig: not initialized until POST /admin/initialize")
    logger.info("=" * 50)


app = FastAPI(title="rakepool cashier", lifespan=lifespan)

# Allow browser frontends to call cashier endpoints
from starlette.middleware.cors import CORSMiddleware

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(EscrowError)
async def escrow_error_handler(request: Request, exc: EscrowError) -> JSONResponse:
    status = status_for(exc)
    logger.warning(f"{request.method} {request.url.path} rejected: {exc.code} ({exc})")
    return JSONResponse(
        status_code=status,
        content={"error": exc.code, "category": exc.category, "detail": str(exc)},
    )


# ======================================================================
# Caller authentication
# ======================================================================


def get_caller(
    x_wallet_address: str | None = Header(default=None),
    x_wallet_message: str | None = Header(default=None),
    x_wallet_signature: str | None = Header(default=None),
) -> str:
    """Verify the signed auth headers and return the caller's address."""
    if not (x_wallet_address and x_wallet_message and x_wallet_signature):
        raise HTTPException(status_code=401, detail="Missing wallet auth headers")
    try:
        return verify_auth(
            x_wallet_address,
            decode_header_message(x_wallet_message),
            x_wallet_signature,
            max_age_seconds=get_settings().auth_max_age_seconds,
        )
    except WalletAuthError as e:
        logger.warning(f"Auth failed for {x_wallet_address}: {e}")
        raise HTTPException(status_code=401, detail=str(e))


def _address_or_400(address: str, field: str) -> str:
    try:
        return normalize_address(address)
    except WalletAuthError as e:
        raise HTTPException(status_code=400, detail=f"{field}: {e}")


# ======================================================================
# Request/Response Models
# ======================================================================


class InitializeAdminRequest(BaseModel):
    # Omitted fields fall back to the [admin] section of config.toml
    default_rake_bps: int | None = None
    creator_share_pct: int | None = None
    admin_share_pct: int | None = None


class RakeSplitRequest(BaseModel):
    creator_share_pct: int
    admin_share_pct: int


class AdminConfigResponse(BaseModel):
    admin_authority: str
    default_rake_bps: int
    creator_rake_share_pct: int
    admin_rake_share_pct: int
    total_rake_collected: int
    total_creator_rake_paid: int
    total_admin_rake_collected: int


class CreateTournamentRequest(BaseModel):
    tournament_id: str
    buy_in: int
    rake_bps: int
    max_players: int
    tournament_type: TournamentType = TournamentType.SIT_N_GO
    privacy_mode: PrivacyMode = PrivacyMode.PUBLIC
    blind_structure: BlindStructure = BlindStructure.PROGRESSIVE


class TournamentResponse(BaseModel):
    tournament_id: str
    creator: str
    buy_in: int
    rake_bps: int
    max_players: int
    tournament_type: str
    privacy_mode: str
    blind_structure: str
    status: str
    total_pot: int
    rake_amount: int
    creator_rake_amount: int
    admin_rake_amount: int
    player_addresses: list[str]
    players_joined: int
    winners: list[str] | None = None
    created_at: int
    started_at: int | None = None
    completed_at: int | None = None
    cancelled_at: int | None = None
    space: int
    custody_balance: int | None = None


class DistributeRequest(BaseModel):
    winner: str


class WithdrawResponse(BaseModel):
    tournament_id: str
    amount: int


class CancelResponse(BaseModel):
    tournament_id: str
    status: str
    refunds: dict[str, int]


class FaucetRequest(BaseModel):
    address: str
    amount: int


class BalanceResponse(BaseModel):
    address: str
    balance: int


class HealthResponse(BaseModel):
    status: str
    initialized: bool
    tournaments: int


def _or_default(value: int | None, default: int) -> int:
    return default if value is None else value


def _tournament_view(program: EscrowProgram, tournament: TournamentEscrow) -> dict[str, Any]:
    view = tournament.to_dict()
    view["custody_balance"] = program.custody_balance(tournament.tournament_id)
    return view


# ======================================================================
# Admin Endpoints
# ======================================================================


@app.post("/admin/initialize", response_model=AdminConfigResponse)
def initialize_admin(req: InitializeAdminRequest, caller: str = Depends(get_caller)) -> dict[str, Any]:
    """One-time platform setup. The signing wallet becomes the admin authority."""
    program = get_program()
    defaults = get_admin_defaults()
    config = program.initialize_admin(
        caller,
        default_rake_bps=_or_default(req.default_rake_bps, defaults.default_rake_bps),
        creator_share_pct=_or_default(req.creator_share_pct, defaults.creator_share_pct),
        admin_share_pct=_or_default(req.admin_share_pct, defaults.admin_share_pct),
    )
    return config.to_dict()


@app.get("/admin/config", response_model=AdminConfigResponse)
def get_admin_config() -> dict[str, Any]:
    return get_program().get_admin_config().to_dict()


@app.post("/admin/rake-split", response_model=AdminConfigResponse)
def update_rake_split(req: RakeSplitRequest, caller: str = Depends(get_caller)) -> dict[str, Any]:
    """Change the creator/admin split. Applies to joins after this call only."""
    config = get_program().update_rake_split(caller, req.creator_share_pct, req.admin_share_pct)
    return config.to_dict()


@app.get("/admin/stats")
def admin_stats() -> dict[str, Any]:
    return get_program().platform_stats()


# ======================================================================
# Tournament Endpoints
# ======================================================================


@app.post("/tournaments", response_model=TournamentResponse)
def create_tournament(req: CreateTournamentRequest, caller: str = Depends(get_caller)) -> dict[str, Any]:
    program = get_program()
    tournament = program.create_tournament(
        caller,
        buy_in=req.buy_in,
        rake_bps=req.rake_bps,
        tournament_id=req.tournament_id,
        max_players=req.max_players,
        tournament_type=req.tournament_type,
        privacy=req.privacy_mode,
        blind_structure=req.blind_structure,
    )
    return _tournament_view(program, tournament)


@app.get("/tournaments")
def list_tournaments(status: TournamentStatus | None = None) -> dict[str, Any]:
    tournaments = get_program().list_tournaments(status)
    return {
        "tournaments": [t.to_dict() for t in tournaments],
        "count": len(tournaments),
    }


@app.get("/tournaments/{tournament_id}", response_model=TournamentResponse)
def get_tournament(tournament_id: str) -> dict[str, Any]:
    program = get_program()
    return _tournament_view(program, program.get_tournament(tournament_id))


@app.post("/tournaments/{tournament_id}/join", response_model=TournamentResponse)
def join_tournament(tournament_id: str, caller: str = Depends(get_caller)) -> dict[str, Any]:
    program = get_program()
    tournament = program.join_tournament(caller, tournament_id)
    return _tournament_view(program, tournament)


@app.post("/tournaments/{tournament_id}/leave", response_model=TournamentResponse)
def leave_tournament(tournament_id: str, caller: str = Depends(get_caller)) -> dict[str, Any]:
    program = get_program()
    tournament = program.leave_tournament(caller, tournament_id)
    return _tournament_view(program, tournament)


@app.post("/tournaments/{tournament_id}/distribute", response_model=TournamentResponse)
def distribute_prizes(
    tournament_id: str, req: DistributeRequest, caller: str = Depends(get_caller)
) -> dict[str, Any]:
    program = get_program()
    winner = _address_or_400(req.winner, "winner")
    tournament = program.distribute_prizes(caller, tournament_id, winner)
    return _tournament_view(program, tournament)


@app.post("/tournaments/{tournament_id}/withdraw-rake", response_model=WithdrawResponse)
def withdraw_rake(tournament_id: str, caller: str = Depends(get_caller)) -> dict[str, Any]:
    amount = get_program().withdraw_rake(caller, tournament_id)
    return {"tournament_id": tournament_id, "amount": amount}


@app.post("/tournaments/{tournament_id}/withdraw-admin-rake", response_model=WithdrawResponse)
def withdraw_admin_rake(tournament_id: str, caller: str = Depends(get_caller)) -> dict[str, Any]:
    amount = get_program().withdraw_admin_rake(caller, tournament_id)
    return {"tournament_id": tournament_id, "amount": amount}


@app.post("/tournaments/{tournament_id}/cancel", response_model=CancelResponse)
def cancel_tournament(tournament_id: str, caller: str = Depends(get_caller)) -> dict[str, Any]:
    refunds = get_program().cancel_tournament(caller, tournament_id)
    return {
        "tournament_id": tournament_id,
        "status": TournamentStatus.CANCELLED.value,
        "refunds": refunds,
    }


# ======================================================================
# Ledger Endpoints
# ======================================================================


@app.get("/balances/{address}", response_model=BalanceResponse)
def get_balance(address: str) -> dict[str, Any]:
    normalized = _address_or_400(address, "address")
    return {"address": normalized, "balance": get_program().balance_of(normalized)}


@app.post("/faucet", response_model=BalanceResponse)
def faucet(req: FaucetRequest) -> dict[str, Any]:
    """Mint test funds into a wallet. Disabled unless allow_faucet is set."""
    if not get_settings().allow_faucet:
        raise HTTPException(status_code=403, detail="Faucet disabled")
    if req.amount <= 0:
        raise HTTPException(status_code=400, detail="Amount must be positive")
    address = _address_or_400(req.address, "address")
    balance = get_program().credit(address, req.amount)
    logger.info(f"Faucet credited {req.amount} to {address}")
    return {"address": address, "balance": balance}


@app.get("/health", response_model=HealthResponse)
def health() -> dict[str, Any]:
    program = get_program()
    return {
        "status": "ok",
        "initialized": program.is_initialized(),
        "tournaments": len(program.list_tournaments()),
    }
