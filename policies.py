"""
Access control rules and the result type shared by the service layer.

Services return either `Ok(value)` or a `Failure` describing a deliberate
rejection. `main.py` maps failures to HTTP responses. Anything unexpected is
raised instead and ends up as a generic server error.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Generic, Optional, TypeVar, Union

T = TypeVar("T")


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T


@dataclass(frozen=True)
class Failure:
    kind: ErrorKind
    msg: str


Result = Union[Ok[T], Failure]


def forbidden(msg: str) -> Failure:
    return Failure(ErrorKind.FORBIDDEN, msg)


def not_found(msg: str) -> Failure:
    return Failure(ErrorKind.NOT_FOUND, msg)


def conflict(msg: str) -> Failure:
    return Failure(ErrorKind.CONFLICT, msg)


class ActorNotFoundError(RuntimeError):
    """The authenticated user id no longer resolves to a stored user."""

    def __init__(self, user_id: str):
        super().__init__(f"Acting user {user_id} not found")
        self.user_id = user_id


def require_actor(actor: Optional[Dict[str, Any]], user_id: str) -> Dict[str, Any]:
    # A token for a deleted account must never fall through to a permission check.
    if actor is None:
        raise ActorNotFoundError(user_id)
    return actor


def can_manage_games(actor: Dict[str, Any], action: str = "manage") -> Result[None]:
    """Game creation and deletion are reserved to administrators."""
    if actor.get("is_admin"):
        return Ok(None)
    return forbidden(f"Not allowed to {action} games. Only administrators can {action} games.")


def can_delete_user(actor: Dict[str, Any], target_id: str) -> Result[None]:
    """A user may delete their own account; an administrator may delete any."""
    if actor["id"] == target_id or actor.get("is_admin"):
        return Ok(None)
    return forbidden("Not allowed to delete this user")


def should_record_completion(user: Dict[str, Any], game_id: str) -> bool:
    return game_id not in user.get("completed_games", [])
