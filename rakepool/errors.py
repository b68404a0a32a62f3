"""
rakepool/errors.py - Typed rejections raised by escrow operations.

Every failure is an EscrowError subclass with a category and a fixed message.
Nothing here is retried by the core: an error aborts the whole operation and
the program rolls back any partial state.
"""

# ============================================================================
# Categories
# ============================================================================

CONFIGURATION = "configuration"
POLICY = "policy"
STATE = "state"
AUTHORIZATION = "authorization"
MEMBERSHIP = "membership"
FUNDS = "funds"

CATEGORIES = (CONFIGURATION, POLICY, STATE, AUTHORIZATION, MEMBERSHIP, FUNDS)


class EscrowError(Exception):
    """Base class for all escrow rejections."""

    category: str = STATE
    message: str = "Escrow operation rejected"

    def __init__(self, detail: str | None = None):
        self.detail = detail
        text = self.message if detail is None else f"{self.message}: {detail}"
        super().__init__(text)

    @property
    def code(self) -> str:
        """Stable error name, e.g. 'TournamentFull'."""
        return type(self).__name__


# ============================================================================
# Configuration
# ============================================================================


class InvalidRakeSplit(EscrowError):
    category = CONFIGURATION
    message = "Invalid rake split: Creator and admin percentages must sum to 100%"


class InvalidRakePercentage(EscrowError):
    category = CONFIGURATION
    message = "Invalid rake percentage: Must be between 0 and 100%"


class AdminAlreadyInitialized(EscrowError):
    category = CONFIGURATION
    message = "Admin config already initialized"


class AdminNotInitialized(EscrowError):
    category = CONFIGURATION
    message = "Admin config has not been initialized"


# ============================================================================
# Policy
# ============================================================================


class RakeTooHigh(EscrowError):
    category = POLICY
    message = "Rake percentage cannot exceed 10%"


class InvalidBuyIn(EscrowError):
    category = POLICY
    message = "Buy-in must be greater than 0"


class InvalidMaxPlayers(EscrowError):
    category = POLICY
    message = "Max players must be between 2 and 10"


class InvalidTournamentId(EscrowError):
    category = POLICY
    message = "Tournament id must be 1 to 32 bytes"


class PrivateTournamentAccessDenied(EscrowError):
    category = POLICY
    message = "Access denied: This is a private tournament"


class InvalidWinnerData(EscrowError):
    category = POLICY
    message = "Invalid winner data provided"


# ============================================================================
# State
# ============================================================================


class TournamentNotWaiting(EscrowError):
    category = STATE
    message = "Tournament is not in waiting status"


class InvalidTournamentStatus(EscrowError):
    category = STATE
    message = "Invalid tournament status for this operation"


class CannotCancelStartedTournament(EscrowError):
    category = STATE
    message = "Cannot cancel a tournament that has already started"


class CannotLeaveStartedTournament(EscrowError):
    category = STATE
    message = "Cannot leave a tournament that has already started"


class IllegalTransition(EscrowError):
    """A status write outside the transition table. Indicates a program bug."""

    category = STATE
    message = "Illegal tournament status transition"


# ============================================================================
# Authorization
# ============================================================================


class Unauthorized(EscrowError):
    category = AUTHORIZATION
    message = "Unauthorized: Caller is not the required authority"


class LedgerAuthorityError(EscrowError):
    """Raised by the ledger when a debit is not signed by the account owner."""

    category = AUTHORIZATION
    message = "Transfer not authorized by the source account owner"


# ============================================================================
# Capacity / membership
# ============================================================================


class TournamentFull(EscrowError):
    category = MEMBERSHIP
    message = "Tournament is full"


class PlayerAlreadyJoined(EscrowError):
    category = MEMBERSHIP
    message = "Player has already joined this tournament"


class PlayerNotInTournament(EscrowError):
    category = MEMBERSHIP
    message = "Player is not in this tournament"


class TournamentAlreadyExists(EscrowError):
    category = MEMBERSHIP
    message = "A tournament with this id already exists"


class TournamentNotFound(EscrowError):
    category = MEMBERSHIP
    message = "Tournament not found"


# ============================================================================
# Funds
# ============================================================================


class NoPrizePool(EscrowError):
    category = FUNDS
    message = "No prize pool to distribute"


class NoRakeToWithdraw(EscrowError):
    category = FUNDS
    message = "No rake to withdraw"


class InsufficientFunds(EscrowError):
    category = FUNDS
    message = "Insufficient funds"


class ArithmeticOverflow(EscrowError):
    category = FUNDS
    message = "Arithmetic overflow"


class InvariantViolation(EscrowError):
    """Custody balance no longer covers the record's obligations."""

    category = FUNDS
    message = "Fund conservation invariant violated"
