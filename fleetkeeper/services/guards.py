"""Route guards as pure functions of a session snapshot."""
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from fleetkeeper.services.session_store import SessionSnapshot

LOGIN_PATH = "/login"
HOME_PATH = "/"


class GuardAction(str, Enum):
    RENDER = "render"
    PLACEHOLDER = "placeholder"
    REDIRECT = "redirect"


@dataclass(frozen=True)
class GuardOutcome:
    action: GuardAction
    location: Optional[str] = None


RENDER = GuardOutcome(GuardAction.RENDER)
PLACEHOLDER = GuardOutcome(GuardAction.PLACEHOLDER)


def require_authenticated(snapshot: SessionSnapshot) -> GuardOutcome:
    """Only signed-in users may see the page; others go to the login view."""
    if snapshot.loading:
        return PLACEHOLDER
    if snapshot.user is None:
        return GuardOutcome(GuardAction.REDIRECT, LOGIN_PATH)
    return RENDER


def require_anonymous(snapshot: SessionSnapshot) -> GuardOutcome:
    """Signed-in users are sent away from the login/register views."""
    if snapshot.loading:
        return PLACEHOLDER
    if snapshot.user is not None:
        return GuardOutcome(GuardAction.REDIRECT, HOME_PATH)
    return RENDER
