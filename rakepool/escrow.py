"""
rakepool/escrow.py - The escrow program: every state transition lives here.

EscrowProgram owns the record store and drives the ledger. Each public
operation runs inside _atomic(): operations are serialized under one lock,
and if anything raises, both the records and the ledger are put back exactly
as they were before the call.

Typical flow:

    program = EscrowProgram()
    program.initialize_admin(admin, default_rake_bps=500,
                             creator_share_pct=70, admin_share_pct=30)
    program.create_tournament(creator, buy_in=1_000_000, rake_bps=500,
                              tournament_id="friday-sng", max_players=4)
    program.join_tournament(player, "friday-sng")      # x4 -> InProgress
    program.distribute_prizes(creator, "friday-sng", winner=player)
    program.withdraw_rake(creator, "friday-sng")
    program.withdraw_admin_rake(admin, "friday-sng")
"""

import copy
import logging
import threading
from collections import Counter
from contextlib import contextmanager
from typing import Any, Iterator

from . import auth
from .errors import (
    AdminAlreadyInitialized,
    AdminNotInitialized,
    CannotCancelStartedTournament,
    CannotLeaveStartedTournament,
    InvalidBuyIn,
    InvalidMaxPlayers,
    InvalidRakePercentage,
    InvalidRakeSplit,
    InvalidTournamentId,
    InvalidTournamentStatus,
    InvalidWinnerData,
    InvariantViolation,
    NoPrizePool,
    NoRakeToWithdraw,
    PlayerAlreadyJoined,
    PlayerNotInTournament,
    RakeTooHigh,
    TournamentAlreadyExists,
    TournamentFull,
    TournamentNotFound,
    TournamentNotWaiting,
    Unauthorized,
)
from .ledger import Clock, InMemoryLedger, Ledger, SystemClock
from .rake import (
    MAX_RAKE_BPS,
    check_u64,
    checked_add,
    compute_rake,
    saturating_sub,
    split_rake,
)
from .records import (
    MAX_PLAYERS,
    MAX_TOURNAMENT_ID_BYTES,
    MIN_PLAYERS,
    AdminConfig,
    BlindStructure,
    PrivacyMode,
    TournamentEscrow,
    TournamentStatus,
    TournamentType,
)
from .store import RecordExistsError, RecordStore, admin_config_address, tournament_address

logger = logging.getLogger(__name__)

# Authority the ledger expects when debiting a program-owned custody account.
PROGRAM_ID = "rakepool.escrow"


# ============================================================================
# Validation helpers
# ============================================================================


def _validate_rake_split(creator_share_pct: int, admin_share_pct: int) -> None:
    if creator_share_pct + admin_share_pct != 100:
        raise InvalidRakeSplit(f"{creator_share_pct} + {admin_share_pct}")
    for pct in (creator_share_pct, admin_share_pct):
        if pct < 0 or pct > 100:
            raise InvalidRakePercentage(str(pct))


def _validate_tournament_id(tournament_id: str) -> None:
    if not isinstance(tournament_id, str):
        raise InvalidTournamentId(repr(tournament_id))
    size = len(tournament_id.encode("utf-8"))
    if size == 0 or size > MAX_TOURNAMENT_ID_BYTES:
        raise InvalidTournamentId(f"{size} bytes")


class EscrowProgram:
    """Tournament escrow over a custody ledger and a clock."""

    def __init__(
        self,
        ledger: Ledger | None = None,
        clock: Clock | None = None,
        program_id: str = PROGRAM_ID,
    ):
        self.ledger = ledger if ledger is not None else InMemoryLedger()
        self.clock = clock if clock is not None else SystemClock()
        self.program_id = program_id
        self._store = RecordStore()
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    @contextmanager
    def _atomic(self, operation: str) -> Iterator[None]:
        """Serialize an operation and roll records + ledger back if it raises."""
        with self._lock:
            records = self._store.snapshot()
            balances = self.ledger.snapshot()
            try:
                yield
            except Exception as e:
                self._store.restore(records)
                self.ledger.restore(balances)
                logger.debug(f"{operation} rolled back: {e}")
                raise

    def _admin_config(self) -> AdminConfig:
        config = self._store.get(admin_config_address())
        if config is None:
            raise AdminNotInitialized()
        return config

    def _tournament(self, tournament_id: str) -> tuple[str, TournamentEscrow]:
        address = tournament_address(tournament_id)
        tournament = self._store.get(address)
        if tournament is None:
            raise TournamentNotFound(tournament_id)
        return address, tournament

    def _check_custody(self, address: str, tournament: TournamentEscrow) -> None:
        """Custody must cover the pot plus both rake buckets."""
        if tournament.creator_rake_amount + tournament.admin_rake_amount != tournament.rake_amount:
            raise InvariantViolation(
                f"{tournament.tournament_id}: rake buckets "
                f"{tournament.creator_rake_amount}+{tournament.admin_rake_amount} "
                f"!= {tournament.rake_amount}"
            )
        held = self.ledger.balance_of(address)
        if held < tournament.obligations:
            raise InvariantViolation(
                f"{tournament.tournament_id}: custody {held} < obligations {tournament.obligations}"
            )

    # ------------------------------------------------------------------
    # Admin
    # ------------------------------------------------------------------

    def initialize_admin(
        self,
        caller: str,
        default_rake_bps: int,
        creator_share_pct: int,
        admin_share_pct: int,
    ) -> AdminConfig:
        """Create the AdminConfig singleton. The caller becomes the platform admin."""
        with self._atomic("initialize_admin"):
            _validate_rake_split(creator_share_pct, admin_share_pct)
            if default_rake_bps < 0 or default_rake_bps > MAX_RAKE_BPS:
                raise RakeTooHigh(f"default_rake_bps={default_rake_bps}")
            if not caller:
                raise Unauthorized("admin identity required")

            config = AdminConfig(
                admin_authority=caller,
                default_rake_bps=default_rake_bps,
                creator_rake_share_pct=creator_share_pct,
                admin_rake_share_pct=admin_share_pct,
            )
            try:
                self._store.create(admin_config_address(), config)
            except RecordExistsError:
                raise AdminAlreadyInitialized() from None

            logger.info(f"Admin initialized: {caller}")
            logger.info(f"Default rake: {default_rake_bps} bps")
            logger.info(f"Rake split: creator {creator_share_pct}% / admin {admin_share_pct}%")
            return copy.deepcopy(config)

    def update_rake_split(
        self, caller: str, creator_share_pct: int, admin_share_pct: int
    ) -> AdminConfig:
        """Change the split applied to future joins. Admin only."""
        with self._atomic("update_rake_split"):
            config = self._admin_config()
            auth.require_admin(caller, config)
            _validate_rake_split(creator_share_pct, admin_share_pct)

            config.creator_rake_share_pct = creator_share_pct
            config.admin_rake_share_pct = admin_share_pct
            logger.info(f"Rake split updated: creator {creator_share_pct}% / admin {admin_share_pct}%")
            return copy.deepcopy(config)

    # ------------------------------------------------------------------
    # Tournament lifecycle
    # ------------------------------------------------------------------

    def create_tournament(
        self,
        caller: str,
        buy_in: int,
        rake_bps: int,
        tournament_id: str,
        max_players: int,
        tournament_type: TournamentType | str = TournamentType.SIT_N_GO,
        privacy: PrivacyMode | str = PrivacyMode.PUBLIC,
        blind_structure: BlindStructure | str = BlindStructure.PROGRESSIVE,
    ) -> TournamentEscrow:
        """Open a new escrow keyed by tournament_id. The caller becomes creator."""
        with self._atomic("create_tournament"):
            if rake_bps < 0 or rake_bps > MAX_RAKE_BPS:
                raise RakeTooHigh(f"rake_bps={rake_bps}")
            if buy_in <= 0:
                raise InvalidBuyIn(str(buy_in))
            check_u64(buy_in, "buy_in")
            if max_players < MIN_PLAYERS or max_players > MAX_PLAYERS:
                raise InvalidMaxPlayers(str(max_players))
            _validate_tournament_id(tournament_id)
            if not caller:
                raise Unauthorized("creator identity required")

            address = tournament_address(tournament_id)
            tournament = TournamentEscrow(
                creator=caller,
                tournament_id=tournament_id,
                buy_in=buy_in,
                rake_bps=rake_bps,
                max_players=max_players,
                tournament_type=TournamentType(tournament_type),
                privacy_mode=PrivacyMode(privacy),
                blind_structure=BlindStructure(blind_structure),
                player_addresses=[],
                created_at=self.clock.now(),
            )
            try:
                self._store.create(address, tournament)
            except RecordExistsError:
                raise TournamentAlreadyExists(tournament_id) from None
            self.ledger.open_account(address, owner=self.program_id)

            logger.info(f"Tournament created: {tournament_id} ({tournament.space} bytes)")
            logger.info(
                f"Creator: {caller}, Max players: {max_players}, "
                f"Type: {tournament.tournament_type.value}, Privacy: {tournament.privacy_mode.value}"
            )
            logger.info(
                f"Buy-in: {buy_in}, Rake: {rake_bps} bps, "
                f"Blinds: {tournament.blind_structure.value}"
            )
            return copy.deepcopy(tournament)

    def join_tournament(self, player: str, tournament_id: str) -> TournamentEscrow:
        """Deposit the buy-in and take a seat. The seat that fills the roster starts play."""
        with self._atomic("join_tournament"):
            config = self._admin_config()
            address, tournament = self._tournament(tournament_id)

            if tournament.status is not TournamentStatus.WAITING:
                raise TournamentNotWaiting(tournament.status.value)
            if tournament.is_full:
                raise TournamentFull(f"{tournament.players_joined}/{tournament.max_players}")
            auth.require_may_join(player, tournament)
            if tournament.privacy_mode is PrivacyMode.FRIENDS_ONLY:
                logger.warning(
                    f"{tournament_id} is FriendsOnly but friends lists are not enforced; "
                    f"admitting {player}"
                )
            if tournament.has_player(player):
                raise PlayerAlreadyJoined(player)

            rake, net = compute_rake(tournament.buy_in, tournament.rake_bps)
            creator_rake, admin_rake = split_rake(rake, config.creator_rake_share_pct)
            total_pot = checked_add(tournament.total_pot, net)
            rake_amount = checked_add(tournament.rake_amount, rake)
            creator_rake_amount = checked_add(tournament.creator_rake_amount, creator_rake)
            admin_rake_amount = checked_add(tournament.admin_rake_amount, admin_rake)

            self.ledger.transfer(player, address, tournament.buy_in, authority=player)

            tournament.total_pot = total_pot
            tournament.rake_amount = rake_amount
            tournament.creator_rake_amount = creator_rake_amount
            tournament.admin_rake_amount = admin_rake_amount
            tournament.add_player(player, creator_rake, admin_rake)

            logger.info(
                f"Player {player} joined {tournament_id}. "
                f"Players: {tournament.players_joined}/{tournament.max_players}"
            )

            if tournament.is_full:
                tournament.transition_to(TournamentStatus.IN_PROGRESS)
                tournament.started_at = self.clock.now()
                logger.info(f"Tournament {tournament_id} is full and starting!")

            self._check_custody(address, tournament)
            return copy.deepcopy(tournament)

    def leave_tournament(self, player: str, tournament_id: str) -> TournamentEscrow:
        """Give up a seat before the start and get the full buy-in back."""
        with self._atomic("leave_tournament"):
            address, tournament = self._tournament(tournament_id)

            if tournament.status is not TournamentStatus.WAITING:
                raise CannotLeaveStartedTournament(tournament.status.value)
            if not tournament.has_player(player):
                raise PlayerNotInTournament(player)

            take_creator, take_admin = tournament.remove_player(player)
            self.ledger.transfer(address, player, tournament.buy_in, authority=self.program_id)

            rake, net = compute_rake(tournament.buy_in, tournament.rake_bps)
            tournament.total_pot = saturating_sub(tournament.total_pot, net)
            tournament.rake_amount = saturating_sub(tournament.rake_amount, rake)
            tournament.creator_rake_amount = saturating_sub(tournament.creator_rake_amount, take_creator)
            tournament.admin_rake_amount = saturating_sub(tournament.admin_rake_amount, take_admin)

            logger.info(f"Player {player} left {tournament_id} and was refunded {tournament.buy_in}")

            self._check_custody(address, tournament)
            return copy.deepcopy(tournament)

    def distribute_prizes(self, caller: str, tournament_id: str, winner: str) -> TournamentEscrow:
        """Pay the whole pot to a single winner and complete the tournament."""
        with self._atomic("distribute_prizes"):
            address, tournament = self._tournament(tournament_id)

            auth.require_creator(caller, tournament)
            if tournament.status is not TournamentStatus.IN_PROGRESS:
                raise InvalidTournamentStatus(tournament.status.value)
            if tournament.total_pot <= 0:
                raise NoPrizePool(tournament_id)
            if not isinstance(winner, str) or not winner:
                raise InvalidWinnerData(repr(winner))

            prize = tournament.total_pot
            self.ledger.transfer(address, winner, prize, authority=self.program_id)

            tournament.total_pot = 0
            tournament.winners = [winner]
            tournament.transition_to(TournamentStatus.COMPLETED)
            tournament.completed_at = self.clock.now()

            logger.info(f"Distributed {prize} to winner {winner} ({tournament_id})")

            self._check_custody(address, tournament)
            return copy.deepcopy(tournament)

    def cancel_tournament(self, caller: str, tournament_id: str) -> dict[str, int]:
        """Cancel before the start, refunding every seated player's buy-in.

        Returns {player: refunded_amount}.
        """
        with self._atomic("cancel_tournament"):
            address, tournament = self._tournament(tournament_id)

            auth.require_creator(caller, tournament)
            if tournament.status is not TournamentStatus.WAITING:
                raise CannotCancelStartedTournament(tournament.status.value)

            refunds: dict[str, int] = {}
            for player in tournament.player_addresses:
                self.ledger.transfer(address, player, tournament.buy_in, authority=self.program_id)
                refunds[player] = tournament.buy_in

            tournament.total_pot = 0
            tournament.rake_amount = 0
            tournament.creator_rake_amount = 0
            tournament.admin_rake_amount = 0
            tournament.transition_to(TournamentStatus.CANCELLED)
            tournament.cancelled_at = self.clock.now()

            logger.info(
                f"Tournament {tournament_id} cancelled; refunded {len(refunds)} players "
                f"{sum(refunds.values())} total"
            )

            self._check_custody(address, tournament)
            return refunds

    # ------------------------------------------------------------------
    # Rake withdrawal
    # ------------------------------------------------------------------

    def withdraw_rake(self, caller: str, tournament_id: str) -> int:
        """Creator takes their share of collected rake. Returns the amount."""
        with self._atomic("withdraw_rake"):
            config = self._admin_config()
            address, tournament = self._tournament(tournament_id)

            auth.require_creator(caller, tournament)
            if tournament.status is TournamentStatus.WAITING:
                raise InvalidTournamentStatus("rake is not withdrawable before the start")
            amount = tournament.creator_rake_amount
            if amount <= 0:
                raise NoRakeToWithdraw(tournament_id)

            self.ledger.transfer(address, caller, amount, authority=self.program_id)

            tournament.creator_rake_amount = 0
            tournament.rake_amount = saturating_sub(tournament.rake_amount, amount)
            config.total_creator_rake_paid = checked_add(config.total_creator_rake_paid, amount)
            config.total_rake_collected = checked_add(config.total_rake_collected, amount)

            logger.info(f"Creator withdrew {amount} in rake from {tournament_id}")

            self._check_custody(address, tournament)
            return amount

    def withdraw_admin_rake(self, caller: str, tournament_id: str) -> int:
        """Platform admin takes its share of collected rake. Returns the amount."""
        with self._atomic("withdraw_admin_rake"):
            config = self._admin_config()
            address, tournament = self._tournament(tournament_id)

            auth.require_admin(caller, config)
            if tournament.status is TournamentStatus.WAITING:
                raise InvalidTournamentStatus("rake is not withdrawable before the start")
            amount = tournament.admin_rake_amount
            if amount <= 0:
                raise NoRakeToWithdraw(tournament_id)

            self.ledger.transfer(address, caller, amount, authority=self.program_id)

            tournament.admin_rake_amount = 0
            tournament.rake_amount = saturating_sub(tournament.rake_amount, amount)
            config.total_admin_rake_collected = checked_add(config.total_admin_rake_collected, amount)
            config.total_rake_collected = checked_add(config.total_rake_collected, amount)

            logger.info(f"Admin withdrew {amount} in rake from {tournament_id}")

            self._check_custody(address, tournament)
            return amount

    # ------------------------------------------------------------------
    # Funding
    # ------------------------------------------------------------------

    def credit(self, address: str, amount: int) -> int:
        """Mint test funds into a wallet, serialized with every other operation.

        Returns the new balance.
        """
        with self._atomic("credit"):
            balance = self.ledger.credit(address, amount)
            logger.info(f"Credited {amount} to {address}")
            return balance

    def balance_of(self, address: str) -> int:
        with self._lock:
            return self.ledger.balance_of(address)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def is_initialized(self) -> bool:
        with self._lock:
            return self._store.exists(admin_config_address())

    def get_admin_config(self) -> AdminConfig:
        with self._lock:
            return copy.deepcopy(self._admin_config())

    def get_tournament(self, tournament_id: str) -> TournamentEscrow:
        with self._lock:
            _, tournament = self._tournament(tournament_id)
            return copy.deepcopy(tournament)

    def list_tournaments(self, status: TournamentStatus | None = None) -> list[TournamentEscrow]:
        with self._lock:
            records = [r for r in self._store.values() if isinstance(r, TournamentEscrow)]
            if status is not None:
                records = [r for r in records if r.status is status]
            return copy.deepcopy(records)

    def custody_balance(self, tournament_id: str) -> int:
        with self._lock:
            address, _ = self._tournament(tournament_id)
            return self.ledger.balance_of(address)

    def platform_stats(self) -> dict[str, Any]:
        """Audit counters plus tournament counts by status."""
        with self._lock:
            config = self._admin_config()
            tournaments = [r for r in self._store.values() if isinstance(r, TournamentEscrow)]
            by_status = Counter(t.status.value for t in tournaments)
            return {
                "total_rake_collected": config.total_rake_collected,
                "total_creator_rake_paid": config.total_creator_rake_paid,
                "total_admin_rake_collected": config.total_admin_rake_collected,
                "tournaments": len(tournaments),
                "by_status": {s.value: by_status.get(s.value, 0) for s in TournamentStatus},
                "pending_rake": sum(t.rake_amount for t in tournaments),
                "open_pots": sum(t.total_pot for t in tournaments),
            }
