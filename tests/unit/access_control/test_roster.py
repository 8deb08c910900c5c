from packstore.access_control import Actor, ActorRoster, Role


def actor(id, role, active=True):
    return Actor(id=id, role=role, active=active)


def test_highest_role_wins():
    roster = ActorRoster([actor("a", Role.ASSISTANT), actor("z", Role.OWNER)])
    assert roster.elect_responder().id == "z"


def test_ties_go_to_lowest_id():
    roster = ActorRoster([actor("m", Role.OWNER), actor("b", Role.OWNER), actor("x", Role.OWNER)])
    assert roster.elect_responder().id == "b"


def test_inactive_and_unprivileged_are_not_candidates():
    roster = ActorRoster(
        [
            actor("a", Role.OWNER, active=False),
            actor("b", Role.MEMBER),
            actor("c", Role.TRUSTED),
        ]
    )
    assert roster.elect_responder() is None
    assert roster.active_privileged() == []


def test_is_responder_follows_roster_changes():
    first = actor("a", Role.OWNER)
    second = actor("b", Role.ASSISTANT)
    roster = ActorRoster([first, second])

    assert roster.is_responder(first)
    assert not roster.is_responder(second)

    roster.set_active("a", False)
    assert roster.is_responder(second)
    assert roster.get("a").active is False

    roster.remove("b")
    assert roster.elect_responder() is None


def test_set_active_unknown_actor_is_noop():
    roster = ActorRoster()
    roster.set_active("ghost", True)
    assert roster.get("ghost") is None
