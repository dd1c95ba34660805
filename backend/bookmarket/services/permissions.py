"""Authorization rules for every mutating or role-scoped operation.

Routers call :func:`authorize` once, before touching the store, instead of
sprinkling role and ownership checks through handler bodies.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional

from fastapi import HTTPException, status

from bookmarket.models.user import User, UserRole
from bookmarket.utils.logger import logger


class Action(str, Enum):
    LISTING_CREATE = "listing:create"
    LISTING_LIST_OWN = "listing:list_own"
    LISTING_UPDATE = "listing:update"
    LISTING_DELETE = "listing:delete"
    CART_MODIFY = "cart:modify"
    ORDER_CREATE = "order:create"
    MESSAGE_SEND = "message:send"


@dataclass(frozen=True)
class Rule:
    role: Optional[UserRole] = None
    owner_only: bool = False
    message: str = "Forbidden"


RULES: Dict[Action, Rule] = {
    Action.LISTING_CREATE: Rule(role=UserRole.SELLER, message="Only sellers can create listings"),
    Action.LISTING_LIST_OWN: Rule(role=UserRole.SELLER, message="Only sellers can access this endpoint"),
    Action.LISTING_UPDATE: Rule(owner_only=True, message="You can only edit your own listings"),
    Action.LISTING_DELETE: Rule(owner_only=True, message="You can only delete your own listings"),
    Action.CART_MODIFY: Rule(),
    Action.ORDER_CREATE: Rule(),
    Action.MESSAGE_SEND: Rule(),
}


def is_allowed(user: User, action: Action, owner_id: Optional[int] = None) -> bool:
    rule = RULES[action]
    if rule.role is not None and user.role != rule.role:
        return False
    if rule.owner_only and owner_id != user.id:
        return False
    return True


def authorize(user: User, action: Action, owner_id: Optional[int] = None) -> None:
    """Raise 403 unless ``user`` may perform ``action`` on a resource owned by ``owner_id``."""
    if not is_allowed(user, action, owner_id):
        logger.warning(f"Forbidden: user={user.id} role={user.role.value} action={action.value} owner={owner_id}")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=RULES[action].message)
