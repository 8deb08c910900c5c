from typing import Dict, List, Optional

from .models import Actor


class ActorRoster:
    """
    Tracks the actors connected to a shared set of packs.

    Used to decide which privileged actor answers a proxied request so that
    every request is resolved exactly once.
    """

    def __init__(self, actors: Optional[List[Actor]] = None):
        self._actors: Dict[str, Actor] = {}
        for actor in actors or []:
            self.add(actor)

    def add(self, actor: Actor) -> None:
        self._actors[actor.id] = actor

    def remove(self, actor_id: str) -> None:
        self._actors.pop(actor_id, None)

    def get(self, actor_id: str) -> Optional[Actor]:
        return self._actors.get(actor_id)

    def set_active(self, actor_id: str, active: bool) -> None:
        actor = self._actors.get(actor_id)
        if actor:
            self._actors[actor_id] = actor.model_copy(update={"active": active})

    def active_privileged(self) -> List[Actor]:
        """Active privileged actors, best candidate first."""
        candidates = [a for a in self._actors.values() if a.active and a.is_privileged]
        return sorted(candidates, key=lambda a: (-int(a.role), a.id))

    def elect_responder(self) -> Optional[Actor]:
        """
        Pick the single actor responsible for answering proxied requests.

        Highest role rank wins; ties go to the lowest identifier.
        """
        candidates = self.active_privileged()
        return candidates[0] if candidates else None

    def is_responder(self, actor: Actor) -> bool:
        responder = self.elect_responder()
        return responder is not None and responder.id == actor.id
