"""
rakepool - Tournament buy-in escrow with platform rake

Players deposit buy-ins into a per-tournament custody account, a rake is
carved off each deposit and split between the tournament creator and the
platform admin, and the pot goes to the winner when play ends.
"""

__version__ = "0.1.0"

from .errors import (
    EscrowError,
    # Configuration
    InvalidRakeSplit,
    InvalidRakePercentage,
    AdminAlreadyInitialized,
    AdminNotInitialized,
    # Policy
    RakeTooHigh,
    InvalidBuyIn,
    InvalidMaxPlayers,
    InvalidTournamentId,
    PrivateTournamentAccessDenied,
    InvalidWinnerData,
    # State
    TournamentNotWaiting,
    InvalidTournamentStatus,
    CannotCancelStartedTournament,
    CannotLeaveStartedTournament,
    IllegalTransition,
    # Authorization
    Unauthorized,
    LedgerAuthorityError,
    # Membership
    TournamentFull,
    PlayerAlreadyJoined,
    PlayerNotInTournament,
    TournamentAlreadyExists,
    TournamentNotFound,
    # Funds
    NoPrizePool,
    NoRakeToWithdraw,
    InsufficientFunds,
    ArithmeticOverflow,
    InvariantViolation,
)

from .records import (
    AdminConfig,
    TournamentEscrow,
    TournamentStatus,
    TournamentType,
    PrivacyMode,
    BlindStructure,
    tournament_space,
)

from .rake import (
    RakeBreakdown,
    compute_rake,
    split_rake,
    quote,
)

from .ledger import (
    Ledger,
    Clock,
    InMemoryLedger,
    SystemClock,
    ManualClock,
)

from .escrow import EscrowProgram

__all__ = [
    # Version
    "__version__",
    # Program
    "EscrowProgram",
    # Records
    "AdminConfig",
    "TournamentEscrow",
    "TournamentStatus",
    "TournamentType",
    "PrivacyMode",
    "BlindStructure",
    "tournament_space",
    # Rake math
    "RakeBreakdown",
    "compute_rake",
    "split_rake",
    "quote",
    # Collaborators
    "Ledger",
    "Clock",
    "InMemoryLedger",
    "SystemClock",
    "ManualClock",
    # Errors
    "EscrowError",
    "InvalidRakeSplit",
    "InvalidRakePercentage",
    "AdminAlreadyInitialized",
    "AdminNotInitialized",
    "RakeTooHigh",
    "InvalidBuyIn",
    "InvalidMaxPlayers",
    "InvalidTournamentId",
    "PrivateTournamentAccessDenied",
    "InvalidWinnerData",
    "TournamentNotWaiting",
    "InvalidTournamentStatus",
    "CannotCancelStartedTournament",
    "CannotLeaveStartedTournament",
    "IllegalTransition",
    "Unauthorized",
    "LedgerAuthorityError",
    "TournamentFull",
    "PlayerAlreadyJoined",
    "PlayerNotInTournament",
    "TournamentAlreadyExists",
    "TournamentNotFound",
    "NoPrizePool",
    "NoRakeToWithdraw",
    "InsufficientFunds",
    "ArithmeticOverflow",
    "InvariantViolation",
]
