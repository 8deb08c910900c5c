from enum import IntEnum

from pydantic import BaseModel, Field


# --- Roles ---
class Role(IntEnum):
    """Actor role ranks. Higher rank wins responder elections."""

    NONE = 0
    MEMBER = 1
    TRUSTED = 2
    ASSISTANT = 3
    OWNER = 4


# Minimum rank allowed to write to packs directly
PRIVILEGED_ROLE = Role.ASSISTANT


# --- Actors ---
class Actor(BaseModel):
    """An identity that performs reads and writes against packs."""

    id: str = Field(..., description="Unique actor identifier")
    name: str = ""
    role: Role = Role.MEMBER
    active: bool = True

    model_config = {"frozen": True}

    @property
    def is_privileged(self) -> bool:
        return self.role >= PRIVILEGED_ROLE
