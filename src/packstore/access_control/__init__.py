from .models import PRIVILEGED_ROLE, Actor, Role
from .roster import ActorRoster

__all__ = ["Actor", "ActorRoster", "PRIVILEGED_ROLE", "Role"]
