"""
rakepool/records.py - AdminConfig and TournamentEscrow record types.

Records are plain dataclasses. They hold data and enforce their own shape
invariants (status transitions, roster bounds); fund movement and
authorization live in rakepool.escrow.

Layout sizes mirror the fixed-capacity storage the records are allocated in:
a TournamentEscrow reserves 32 bytes per roster seat and the same again for
the optional winner list, so its size is a function of max_players.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .errors import IllegalTransition, TournamentFull

# ============================================================================
# Constants
# ============================================================================

MIN_PLAYERS = 2
MAX_PLAYERS = 10
MAX_TOURNAMENT_ID_BYTES = 32

IDENTITY_SIZE = 32
DISCRIMINATOR_SIZE = 8


# ============================================================================
# Enums
# ============================================================================


class TournamentStatus(Enum):
    WAITING = "Waiting"
    IN_PROGRESS = "InProgress"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (TournamentStatus.COMPLETED, TournamentStatus.CANCELLED)


class TournamentType(Enum):
    SIT_N_GO = "SitNGo"
    SCHEDULED = "Scheduled"
    BOUNTY = "Bounty"
    REBUY = "Rebuy"
    FREE_ROLL = "FreeRoll"


class PrivacyMode(Enum):
    PUBLIC = "Public"
    PRIVATE = "Private"
    FRIENDS_ONLY = "FriendsOnly"


class BlindStructure(Enum):
    PROGRESSIVE = "Progressive"
    TURBO = "Turbo"
    SLOW = "Slow"
    HYPER_TURBO = "HyperTurbo"


# Forward-only lifecycle. Completed and Cancelled have no way out.
ALLOWED_TRANSITIONS: dict[TournamentStatus, frozenset[TournamentStatus]] = {
    TournamentStatus.WAITING: frozenset(
        {TournamentStatus.IN_PROGRESS, TournamentStatus.CANCELLED}
    ),
    TournamentStatus.IN_PROGRESS: frozenset({TournamentStatus.COMPLETED}),
    TournamentStatus.COMPLETED: frozenset(),
    TournamentStatus.CANCELLED: frozenset(),
}


def can_transition(current: TournamentStatus, target: TournamentStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


# ============================================================================
# AdminConfig
# ============================================================================


@dataclass
class AdminConfig:
    """Deployment-wide platform authority and rake-split policy."""

    admin_authority: str
    default_rake_bps: int
    creator_rake_share_pct: int
    admin_rake_share_pct: int
    total_rake_collected: int = 0
    total_creator_rake_paid: int = 0
    total_admin_rake_collected: int = 0

    # discriminator + authority + 3 × u16 + 3 × u64 + bump
    SPACE = DISCRIMINATOR_SIZE + IDENTITY_SIZE + 3 * 2 + 3 * 8 + 1

    def to_dict(self) -> dict[str, Any]:
        return {
            "admin_authority": self.admin_authority,
            "default_rake_bps": self.default_rake_bps,
            "creator_rake_share_pct": self.creator_rake_share_pct,
            "admin_rake_share_pct": self.admin_rake_share_pct,
            "total_rake_collected": self.total_rake_collected,
            "total_creator_rake_paid": self.total_creator_rake_paid,
            "total_admin_rake_collected": self.total_admin_rake_collected,
        }


# ============================================================================
# TournamentEscrow
# ============================================================================


def tournament_space(max_players: int) -> int:
    """Serialized size in bytes of a TournamentEscrow with max_players seats."""
    return (
        DISCRIMINATOR_SIZE
        + IDENTITY_SIZE  # creator
        + 4 + MAX_TOURNAMENT_ID_BYTES  # tournament_id (length-prefixed)
        + 8  # buy_in
        + 2  # rake_bps
        + 8  # total_pot
        + 8  # rake_amount
        + 8  # creator_rake_amount
        + 8  # admin_rake_amount
        + 1  # players_joined
        + 1  # max_players
        + 1  # tournament_type
        + 1  # privacy_mode
        + 1  # blind_structure
        + 1  # status
        + 4 + IDENTITY_SIZE * max_players  # player_addresses
        + 1 + 4 + IDENTITY_SIZE * max_players  # winners (optional list)
        + 8  # created_at
        + 1 + 8  # started_at
        + 1 + 8  # completed_at
        + 1 + 8  # cancelled_at
        + 1  # bump
    )


@dataclass
class TournamentEscrow:
    """One tournament's pooled funds, roster and lifecycle."""

    creator: str
    tournament_id: str
    buy_in: int
    rake_bps: int
    max_players: int
    tournament_type: TournamentType = TournamentType.SIT_N_GO
    privacy_mode: PrivacyMode = PrivacyMode.PUBLIC
    blind_structure: BlindStructure = BlindStructure.PROGRESSIVE
    status: TournamentStatus = TournamentStatus.WAITING
    total_pot: int = 0
    rake_amount: int = 0
    creator_rake_amount: int = 0
    admin_rake_amount: int = 0
    player_addresses: list[str] = field(default_factory=list)
    # (creator_rake, admin_rake) each seated player paid, fixed at join time
    seat_rake: dict[str, tuple[int, int]] = field(default_factory=dict)
    winners: list[str] | None = None
    created_at: int = 0
    started_at: int | None = None
    completed_at: int | None = None
    cancelled_at: int | None = None

    @property
    def players_joined(self) -> int:
        return len(self.player_addresses)

    @property
    def is_full(self) -> bool:
        return self.players_joined >= self.max_players

    @property
    def space(self) -> int:
        return tournament_space(self.max_players)

    @property
    def obligations(self) -> int:
        """What custody must cover: the pot plus both unwithdrawn rake buckets."""
        return self.total_pot + self.creator_rake_amount + self.admin_rake_amount

    def has_player(self, player: str) -> bool:
        return player in self.player_addresses

    def add_player(self, player: str, creator_rake: int = 0, admin_rake: int = 0) -> None:
        if self.is_full:
            raise TournamentFull(f"{self.players_joined}/{self.max_players}")
        self.player_addresses.append(player)
        self.seat_rake[player] = (creator_rake, admin_rake)

    def remove_player(self, player: str) -> tuple[int, int]:
        """Drop a player from the roster. Returns the rake split they paid on joining."""
        self.player_addresses.remove(player)
        return self.seat_rake.pop(player, (0, 0))

    def transition_to(self, target: TournamentStatus) -> None:
        """Move to target status, rejecting anything outside the table."""
        if not can_transition(self.status, target):
            raise IllegalTransition(f"{self.status.value} -> {target.value}")
        self.status = target

    def to_dict(self) -> dict[str, Any]:
        return {
            "tournament_id": self.tournament_id,
            "creator": self.creator,
            "buy_in": self.buy_in,
            "rake_bps": self.rake_bps,
            "max_players": self.max_players,
            "tournament_type": self.tournament_type.value,
            "privacy_mode": self.privacy_mode.value,
            "blind_structure": self.blind_structure.value,
            "status": self.status.value,
            "total_pot": self.total_pot,
            "rake_amount": self.rake_amount,
            "creator_rake_amount": self.creator_rake_amount,
            "admin_rake_amount": self.admin_rake_amount,
            "player_addresses": list(self.player_addresses),
            "players_joined": self.players_joined,
            "winners": list(self.winners) if self.winners is not None else None,
            "created_at": self.created_at,
            "started_at": self.started_at,
            "completed_at": self.completed_at,
            "cancelled_at": self.cancelled_at,
            "space": self.space,
        }
