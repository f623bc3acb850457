import math

import pytest

from workload_tuner.domain.context.memory.semantic_memory import (
    CONFIDENCE_FLOOR,
    WEIGHT_FLOOR,
    SemanticMemory,
    UnknownFactError,
)
from workload_tuner.domain.models.memory import SemanticFact


def _single_fact(weight: float = 0.5, confidence: float = 0.5):
    memory = SemanticMemory(seed=False)
    fact = memory.add_fact(SemanticFact(
        statement="Disabling VSync lowers input latency",
        category="Gaming",
        synaptic_weight=weight,
        confidence=confidence,
    ))
    return memory, fact


def test_seeded_with_base_knowledge() -> None:
    memory = SemanticMemory()

    assert len(memory.get_all_facts()) == 8
    assert len(memory.get_facts_by_category("GameOptimization")) == 2


def test_reinforce_moves_weight_and_confidence_by_magnitude() -> None:
    memory, fact = _single_fact()

    updated = memory.reinforce(fact.id, 2.0)

    assert updated.synaptic_weight == pytest.approx(0.6)
    assert updated.confidence == pytest.approx(0.54)
    assert updated.reinforcement_count == fact.reinforcement_count + 1


def test_weaken_is_slower_than_reinforce() -> None:
    memory, fact = _single_fact()

    updated = memory.weaken(fact.id, 1.0)

    assert updated.synaptic_weight == pytest.approx(0.47)
    assert updated.confidence == pytest.approx(0.49)


def test_repeated_weakening_stops_at_floors() -> None:
    memory, fact = _single_fact(weight=0.2, confidence=0.25)

    for _ in range(50):
        fact = memory.weaken(fact.id, 2.0)

    assert fact.synaptic_weight == pytest.approx(WEIGHT_FLOOR)
    assert fact.confidence == pytest.approx(CONFIDENCE_FLOOR)


def test_repeated_reinforcement_stops_at_ceiling() -> None:
    memory, fact = _single_fact(weight=0.95, confidence=0.99)

    for _ in range(10):
        fact = memory.reinforce(fact.id, 2.0)

    assert fact.synaptic_weight == pytest.approx(1.0)
    assert fact.confidence == pytest.approx(1.0)


@pytest.mark.parametrize("magnitude", [-1.0, math.nan, math.inf])
def test_invalid_magnitude_keeps_prior_value(magnitude: float) -> None:
    memory, fact = _single_fact()

    assert memory.reinforce(fact.id, magnitude) == fact
    assert memory.weaken(fact.id, magnitude) == fact
    assert memory.get_fact(fact.id) == fact


def test_add_fact_clamps_out_of_range_values() -> None:
    memory = SemanticMemory(seed=False)

    fact = memory.add_fact(SemanticFact(statement="x", category="c", synaptic_weight=0.0, confidence=0.0))

    assert fact.synaptic_weight == WEIGHT_FLOOR
    assert fact.confidence == CONFIDENCE_FLOOR


def test_unknown_fact_raises() -> None:
    memory = SemanticMemory(seed=False)

    with pytest.raises(UnknownFactError):
        memory.reinforce("missing")
    with pytest.raises(ValueError):
        memory.weaken("missing")


def test_upsert_reinforces_existing_statement_instead_of_duplicating() -> None:
    memory, fact = _single_fact()

    updated = memory.upsert_fact(
        SemanticFact(statement=fact.statement, category="Gaming", parameters={"LatencyMS": -2.0}),
    )

    assert updated.id == fact.id
    assert len(memory.get_facts_by_category("Gaming")) == 1
    assert updated.synaptic_weight > fact.synaptic_weight
    assert updated.parameters == {"LatencyMS": -2.0}


def test_linked_facts_are_related() -> None:
    memory = SemanticMemory(seed=False)
    first = memory.add_fact(SemanticFact(statement="a", category="c"))
    second = memory.add_fact(SemanticFact(statement="b", category="c"))

    memory.link_facts(first.id, second.id)
    memory.link_facts(first.id, second.id)

    assert [f.id for f in memory.get_related_facts(first.id)] == [second.id]
    assert memory.get_fact(first.id).linked_fact_ids == (second.id,)


def test_checkpoint_restore_discards_later_changes() -> None:
    memory, fact = _single_fact()
    checkpoint = memory.checkpoint()

    memory.reinforce(fact.id)
    memory.add_fact(SemanticFact(statement="new", category="Gaming"))
    memory.restore(checkpoint)

    assert memory.get_fact(fact.id) == fact
    assert len(memory.get_facts_by_category("Gaming")) == 1
