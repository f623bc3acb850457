from workload_tuner.domain.context.memory.episodic_memory import EpisodicMemory
from workload_tuner.domain.models.memory import EmotionalSignificance, Episode


def test_seeded_with_base_experiences() -> None:
    memory = EpisodicMemory()

    assert len(memory.get_all_episodes()) == 4
    assert len(memory.get_successful_episodes()) == 2
    assert len(memory.get_failed_episodes()) == 2
    assert memory.success_rate() == 0.5


def test_episodes_are_indexed_by_tag_and_action() -> None:
    memory = EpisodicMemory(seed=False)
    episode = Episode(
        context="Gaming DisableVSync",
        actions=("DisableVSync",),
        significance=EmotionalSignificance.POSITIVE,
        tags=("Gaming", "InputLatency", "Success"),
    )

    memory.record(episode)

    assert memory.contains(episode.id)
    assert memory.get_episodes_by_tag("InputLatency") == [episode]
    assert memory.get_episodes_by_action("vsync") == [episode]
    assert memory.get_by_significance(EmotionalSignificance.NEGATIVE) == []


def test_extract_lessons_for_gaming() -> None:
    memory = EpisodicMemory()

    lessons = memory.extract_lessons("Gaming")

    assert lessons["total_episodes"] == 1
    assert lessons["success_rate"] == 1.0
    assert ("Disabled OneDrive sync", 1) in lessons["successful_actions"]
    assert lessons["average_metric_gains"]["FPS"] == 65


def test_extract_lessons_without_episodes() -> None:
    memory = EpisodicMemory(seed=False)

    assert memory.extract_lessons("Nothing") == {"tag": "Nothing", "no_episodes_found": True}


def test_learning_progression_counts_recent_episodes() -> None:
    memory = EpisodicMemory()

    progression = memory.get_learning_progression()

    assert progression["total_episodes"] == 4
    assert progression["recent_week_episodes"] == 4
    assert progression["user_approved_count"] == 2
    assert progression["trend"] == "stable"


def _tagged(context: str, *tags: str) -> Episode:
    return Episode(context=context, significance=EmotionalSignificance.POSITIVE, tags=tags)


def test_evict_overflow_drops_oldest_and_their_index_entries() -> None:
    memory = EpisodicMemory(seed=False, capacity=2)
    first = _tagged("first", "Gaming", "Rare")
    second = _tagged("second", "Gaming")
    third = _tagged("third", "Gaming")
    for episode in (first, second, third):
        memory.record(episode)

    evicted = memory.evict_overflow()

    assert evicted == [first]
    assert not memory.contains(first.id)
    assert len(memory.get_all_episodes()) == 2
    assert {e.context for e in memory.get_episodes_by_tag("Gaming")} == {"second", "third"}
    assert "Rare" not in memory.episodes_by_tag


def test_without_capacity_nothing_is_evicted() -> None:
    memory = EpisodicMemory()

    assert memory.evict_overflow() == []
    assert len(memory.get_all_episodes()) == 4


def test_restore_drops_episodes_recorded_after_checkpoint() -> None:
    memory = EpisodicMemory()
    checkpoint = memory.checkpoint()
    late = _tagged("late", "Gaming", "NewTag")

    memory.record(late)
    memory.restore(checkpoint)

    assert not memory.contains(late.id)
    assert len(memory.get_all_episodes()) == 4
    assert len(memory.get_episodes_by_tag("Gaming")) == 1
    assert "NewTag" not in memory.episodes_by_tag


def test_checkpoint_holds_lengths_not_episodes() -> None:
    memory = EpisodicMemory()

    checkpoint = memory.checkpoint()

    assert checkpoint["episode_count"] == 4
    assert checkpoint["tag_counts"]["Success"] == 2
