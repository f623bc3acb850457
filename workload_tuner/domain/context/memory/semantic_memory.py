from typing import Dict, List, Any, Optional
from datetime import datetime
from collections import defaultdict
import copy
import math
import structlog

from workload_tuner.domain.models.memory import SemanticFact

logger = structlog.get_logger(__name__)

WEIGHT_FLOOR = 0.1
CONFIDENCE_FLOOR = 0.2
CEILING = 1.0

REINFORCE_WEIGHT_STEP = 0.05
REINFORCE_CONFIDENCE_STEP = 0.02
# Forgetting is slower than learning
WEAKEN_WEIGHT_STEP = 0.03
WEAKEN_CONFIDENCE_STEP = 0.01


class UnknownFactError(ValueError):
    """Raised when a fact id is not in the store"""


def _valid_magnitude(magnitude: float) -> bool:
    return isinstance(magnitude, (int, float)) and math.isfinite(magnitude) and magnitude >= 0


class SemanticMemory:
    """Durable facts with synaptic weights, indexed by category"""

    def __init__(self, seed: bool = True):
        self.facts: Dict[str, SemanticFact] = {}
        self.facts_by_category: Dict[str, List[str]] = defaultdict(list)
        if seed:
            self._initialize_base_knowledge()

    def _initialize_base_knowledge(self):
        """Seed foundational optimization knowledge"""

        base_facts = [
            ("SearchIndexer.exe consumes significant memory during operation",
             "ProcessMemory", 0.8, 0.95, 150, {"TypicalMemoryMB": 75, "MaxMemoryMB": 150}),
            ("OneDrive.exe performs background sync operations that reduce available memory",
             "ProcessMemory", 0.7, 0.90, 120, {"TypicalMemoryMB": 50, "ImpactOnFPS": -3}),
            ("Disabling non-essential background services increases gaming FPS",
             "GameOptimization", 0.85, 0.92, 200, {"AverageFPSGain": 18, "MaxFPSGain": 45}),
            ("Lower system latency improves competitive gaming responsiveness",
             "GameOptimization", 0.75, 0.85, 95, {"LatencyReductionMS": 50}),
            ("Latency-sensitive shooters benefit from network prioritization",
             "NetworkLatency", 0.8, 0.88, 140, {"IdealLatencyMS": 15, "TolerableLatencyMS": 40}),
            ("Background cloud sync interrupts network priority, increasing ping spikes",
             "NetworkLatency", 0.7, 0.80, 80, {"PingIncreaseMS": 20}),
            ("Windows Update (TiWorker.exe) uses CPU threads needed for gaming",
             "CPUOptimization", 0.75, 0.85, 110, {"CPUThreadsUsed": 2, "CPUUsagePercent": 15}),
            ("Search indexing continuously scans disk, reducing I/O available for game assets",
             "DiskIO", 0.78, 0.87, 125, {"DiskReadImpactPercent": 20}),
        ]

        for statement, category, weight, confidence, count, parameters in base_facts:
            self.add_fact(SemanticFact(
                statement=statement,
                category=category,
                synaptic_weight=weight,
                confidence=confidence,
                reinforcement_count=count,
                parameters=parameters,
            ))

        logger.debug("Semantic memory seeded", facts=len(self.facts))

    def add_fact(self, fact: SemanticFact) -> SemanticFact:
        """Add a fact, clamping weight and confidence into their ranges"""

        fact = fact.model_copy(update={
            "synaptic_weight": min(CEILING, max(WEIGHT_FLOOR, fact.synaptic_weight)),
            "confidence": min(CEILING, max(CONFIDENCE_FLOOR, fact.confidence)),
        })

        if fact.id not in self.facts:
            self.facts_by_category[fact.category].append(fact.id)
        self.facts[fact.id] = fact
        return fact

    def find_fact(self, statement: str, category: str) -> Optional[SemanticFact]:
        """Find a fact by exact statement within a category"""

        for fact_id in self.facts_by_category.get(category, []):
            fact = self.facts[fact_id]
            if fact.statement == statement:
                return fact
        return None

    def upsert_fact(self, fact: SemanticFact, magnitude: float = 1.0) -> SemanticFact:
        """Add a new fact or reinforce the existing one with the same statement"""

        existing = self.find_fact(fact.statement, fact.category)
        if existing is None:
            return self.add_fact(fact)

        merged = existing.model_copy(update={"parameters": {**existing.parameters, **fact.parameters}})
        self.facts[existing.id] = merged
        return self.reinforce(existing.id, magnitude)

    def reinforce(self, fact_id: str, magnitude: float = 1.0) -> SemanticFact:
        """Raise weight and confidence; neurons that fire together wire together"""

        fact = self.get_fact(fact_id)
        if fact is None:
            raise UnknownFactError(fact_id)

        if not _valid_magnitude(magnitude):
            logger.warning("Rejected fact reinforcement", fact_id=fact_id, magnitude=magnitude)
            return fact

        updated = fact.model_copy(update={
            "reinforcement_count": fact.reinforcement_count + 1,
            "last_reinforced_at": datetime.utcnow(),
            "synaptic_weight": min(CEILING, max(WEIGHT_FLOOR, fact.synaptic_weight + REINFORCE_WEIGHT_STEP * magnitude)),
            "confidence": min(CEILING, max(CONFIDENCE_FLOOR, fact.confidence + REINFORCE_CONFIDENCE_STEP * magnitude)),
        })
        return self._commit(fact, updated)

    def weaken(self, fact_id: str, magnitude: float = 1.0) -> SemanticFact:
        """Lower weight and confidence toward their floors; facts are never deleted"""

        fact = self.get_fact(fact_id)
        if fact is None:
            raise UnknownFactError(fact_id)

        if not _valid_magnitude(magnitude):
            logger.warning("Rejected fact weakening", fact_id=fact_id, magnitude=magnitude)
            return fact

        updated = fact.model_copy(update={
            "synaptic_weight": min(CEILING, max(WEIGHT_FLOOR, fact.synaptic_weight - WEAKEN_WEIGHT_STEP * magnitude)),
            "confidence": min(CEILING, max(CONFIDENCE_FLOOR, fact.confidence - WEAKEN_CONFIDENCE_STEP * magnitude)),
        })
        return self._commit(fact, updated)

    def _commit(self, previous: SemanticFact, updated: SemanticFact) -> SemanticFact:
        """Store an updated fact unless it breaks the weight/confidence invariant"""

        in_range = (
            WEIGHT_FLOOR <= updated.synaptic_weight <= CEILING
            and CONFIDENCE_FLOOR <= updated.confidence <= CEILING
        )
        if not in_range:
            logger.warning("Rejected fact update outside bounds", fact_id=previous.id)
            return previous

        self.facts[previous.id] = updated
        return updated

    def get_fact(self, fact_id: str) -> Optional[SemanticFact]:
        """Get fact by id"""
        return self.facts.get(fact_id)

    def get_facts_by_category(self, category: str) -> List[SemanticFact]:
        """Get all facts in a category, strongest first"""

        facts = [self.facts[fact_id] for fact_id in self.facts_by_category.get(category, [])]
        return sorted(facts, key=lambda f: f.strength, reverse=True)

    def search_by_category(self, fragment: str) -> List[SemanticFact]:
        """Facts whose category contains the fragment, strongest first"""

        needle = fragment.lower()
        facts = [f for f in self.facts.values() if needle in f.category.lower()]
        return sorted(facts, key=lambda f: f.strength, reverse=True)

    def get_all_facts(self) -> List[SemanticFact]:
        """All facts, strongest first"""
        return sorted(self.facts.values(), key=lambda f: f.strength, reverse=True)

    def link_facts(self, source_fact_id: str, target_fact_id: str):
        """Create a directed association between two facts"""

        source = self.get_fact(source_fact_id)
        if source is None:
            raise UnknownFactError(source_fact_id)
        if target_fact_id not in self.facts:
            raise UnknownFactError(target_fact_id)

        if target_fact_id not in source.linked_fact_ids:
            self.facts[source_fact_id] = source.model_copy(
                update={"linked_fact_ids": source.linked_fact_ids + (target_fact_id,)}
            )

    def get_related_facts(self, fact_id: str) -> List[SemanticFact]:
        """Facts linked from this one, strongest first"""

        fact = self.get_fact(fact_id)
        if fact is None:
            return []

        related = [self.facts[i] for i in fact.linked_fact_ids if i in self.facts]
        return sorted(related, key=lambda f: f.strength, reverse=True)

    def get_strongest_connections(self, count: int = 10) -> List[SemanticFact]:
        """Most influential knowledge, favouring often-reinforced facts"""

        return sorted(
            self.facts.values(),
            key=lambda f: f.strength * (1.0 + math.log(f.reinforcement_count + 1)),
            reverse=True,
        )[:count]

    def checkpoint(self) -> Dict[str, Any]:
        """Capture store state for rollback"""
        return {
            "facts": dict(self.facts),
            "facts_by_category": copy.deepcopy(dict(self.facts_by_category)),
        }

    def restore(self, state: Dict[str, Any]):
        """Restore a captured state"""
        self.facts = dict(state["facts"])
        self.facts_by_category = defaultdict(list, state["facts_by_category"])

    def get_statistics(self) -> Dict[str, Any]:
        """Get semantic memory statistics"""

        facts = list(self.facts.values())
        categories: Dict[str, int] = {}
        for fact in facts:
            categories[fact.category] = categories.get(fact.category, 0) + 1

        strongest = max(facts, key=lambda f: f.strength) if facts else None

        return {
            "total_facts": len(facts),
            "categories": categories,
            "average_synaptic_weight": sum(f.synaptic_weight for f in facts) / len(facts) if facts else 0.0,
            "average_confidence": sum(f.confidence for f in facts) / len(facts) if facts else 0.0,
            "total_reinforcements": sum(f.reinforcement_count for f in facts),
            "strongest_fact": strongest.statement if strongest else None,
        }
