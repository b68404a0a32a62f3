"""
rakepool/auth.py - Capability checks applied before any escrow mutation.

The core trusts that callers were already authenticated upstream (the
cashier verifies wallet signatures); here we only compare identities.
"""

from .errors import PrivateTournamentAccessDenied, Unauthorized
from .records import AdminConfig, PrivacyMode, TournamentEscrow


def is_authorized(caller: str, authority: str) -> bool:
    """A caller holds a capability iff it is exactly the stored authority."""
    return bool(caller) and caller == authority


def require_authority(caller: str, authority: str, role: str) -> None:
    if not is_authorized(caller, authority):
        raise Unauthorized(f"{caller} is not the {role}")


def require_creator(caller: str, tournament: TournamentEscrow) -> None:
    require_authority(caller, tournament.creator, "tournament creator")


def require_admin(caller: str, config: AdminConfig) -> None:
    require_authority(caller, config.admin_authority, "platform admin")


def may_join(player: str, tournament: TournamentEscrow) -> bool:
    """Privacy gate for joins.

    Private admits only the creator. FriendsOnly has no friends list yet and
    admits anyone, same as Public.
    """
    if tournament.privacy_mode is PrivacyMode.PRIVATE:
        return is_authorized(player, tournament.creator)
    return True


def require_may_join(player: str, tournament: TournamentEscrow) -> None:
    if not may_join(player, tournament):
        raise PrivateTournamentAccessDenied(tournament.tournament_id)
