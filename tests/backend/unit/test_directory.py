from divineclash.backend.directory import ActorProfile, StaticDirectory
from divineclash.backend.models import Participant


def test_static_directory_looks_up_by_actor_then_participant_id() -> None:
    directory = StaticDirectory(
        profiles={
            "actor-1": ActorProfile(name="Brann", vitality=12, attack_stones=4),
            "p2": ActorProfile(mastery_rank=5),
        }
    )
    first = Participant(id="p1", actor_id="actor-1")
    second = Participant(id="p2", name="Cyra")

    assert directory.display_name(first) == "Brann"
    assert directory.default_vitality(first) == 12
    assert directory.default_stones(first) == (4, 0)
    assert directory.display_name(second) == "Cyra"
    assert directory.default_stones(second) is None
    assert directory.mastery_rank(second) == 5


def test_static_directory_falls_back_to_user_label() -> None:
    directory = StaticDirectory()

    assert directory.display_name(Participant(id="u7")) == "User u7"
    assert directory.mastery_rank(Participant(id="u7")) is None
