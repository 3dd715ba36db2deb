"""Authorization boundary: turn caller identities into capability tokens."""

from dataclasses import dataclass

from loan_ledger.exceptions import ForbiddenError
from loan_ledger.models.financial import Capability, Role

ROLE_CAPABILITIES: dict[Role, frozenset[Capability]] = {
    Role.BORROWER: frozenset({
        Capability.SUBMIT_PAYMENT,
        Capability.VIEW_LEDGER,
    }),
    Role.COLLECTOR: frozenset({
        Capability.SUBMIT_PAYMENT,
        Capability.CONFIRM_PAYMENT,
        Capability.MANAGE_PAYMENTS,
        Capability.VIEW_LEDGER,
    }),
    Role.ADMIN: frozenset(Capability),
}

# Roles confined to their own borrower records
SELF_SCOPED_ROLES = frozenset({Role.BORROWER})

if set(ROLE_CAPABILITIES) != set(Role):
    raise RuntimeError("Every role needs an explicit capability set")


@dataclass(frozen=True)
class Identity:
    """Caller as reported by the identity provider."""

    actor_id: str
    role: Role | str


@dataclass(frozen=True)
class ActorToken:
    """Pre-validated caller accepted by the ledger service."""

    actor_id: str
    role: Role
    capabilities: frozenset[Capability]

    def can(self, capability: Capability) -> bool:
        return capability in self.capabilities


def authorize(identity: Identity) -> ActorToken:
    """Resolve an identity's role into its capability token.

    Raises
    ------
    ForbiddenError
        If the role is not one the ledger knows.
    """
    try:
        role = Role(identity.role.upper() if isinstance(identity.role, str) else identity.role)
    except ValueError:
        raise ForbiddenError(f"Unknown role {identity.role!r}") from None
    return ActorToken(identity.actor_id, role, ROLE_CAPABILITIES[role])


def require(token: ActorToken, capability: Capability) -> None:
    """Fail unless the token carries ``capability``."""
    if not token.can(capability):
        raise ForbiddenError(f"{token.role.value} {token.actor_id} may not {capability.value}")


def require_for_borrower(token: ActorToken, capability: Capability, borrower_id: str) -> None:
    """Like :func:`require`, additionally confining self-scoped roles to themselves."""
    require(token, capability)
    if token.role in SELF_SCOPED_ROLES and token.actor_id != borrower_id:
        raise ForbiddenError(
            f"{token.role.value} {token.actor_id} may only act on their own records"
        )
