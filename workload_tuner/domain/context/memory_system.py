from typing import Deque, Dict, Any, Optional
from collections import deque
from datetime import datetime
import asyncio
import structlog

from workload_tuner.domain.models.memory import Episode, SemanticFact
from workload_tuner.infrastructure.observability.logging import agent_logger
from .memory.semantic_memory import SemanticMemory
from .memory.episodic_memory import EpisodicMemory
from .memory.causal_memory import CausalMemory

logger = structlog.get_logger(__name__)


class MemorySystem:
    """Coordinates semantic, episodic and causal memory.

    ``learn_from_experience`` is the only write path driven by outcomes. It
    runs as one transaction per episode: the stores are checkpointed before
    the four integration steps and restored if any step raises, and the lock
    keeps readers from seeing a half-applied episode.
    """

    def __init__(
        self,
        semantic: Optional[SemanticMemory] = None,
        episodic: Optional[EpisodicMemory] = None,
        causal: Optional[CausalMemory] = None,
        episode_capacity: Optional[int] = None,
    ):
        self.semantic = semantic if semantic is not None else SemanticMemory()
        self.episodic = episodic if episodic is not None else EpisodicMemory(capacity=episode_capacity)
        self.causal = causal if causal is not None else CausalMemory()

        self._lock = asyncio.Lock()
        self.learning_cycle_count = 0
        self.consolidation_count = 0
        self.consolidations: Deque[Dict[str, Any]] = deque(maxlen=10)

    async def learn_from_experience(self, episode: Episode) -> bool:
        """Integrate one episode into all three stores.

        Returns False without touching any store when the episode was
        already learned.
        """

        async with self._lock:
            if self.episodic.contains(episode.id):
                logger.debug("Episode already learned", episode_id=episode.id)
                return False

            checkpoint = self._checkpoint()
            try:
                self._integrate(episode)
            except Exception:
                self._restore(checkpoint)
                logger.error("Learning transaction rolled back", episode_id=episode.id, exc_info=True)
                raise

            self.learning_cycle_count += 1
            self.episodic.evict_overflow()

        agent_logger.log_memory_update(
            memory_type="all",
            action="learn_from_experience",
            details={
                "episode_id": episode.id,
                "significance": episode.significance.name,
                "tags": list(episode.tags),
                "learning_cycle": self.learning_cycle_count,
            }
        )
        return True

    def _integrate(self, episode: Episode):
        self.episodic.record(episode)
        self._extract_semantic_facts(episode, magnitude=float(max(int(episode.significance), 0)))
        self._update_causal_understanding(episode)
        self._reinforce_learning(episode)

    def _extract_semantic_facts(self, episode: Episode, magnitude: float):
        """Turn the actions of a positive episode into facts"""

        if not episode.significance.is_positive:
            return

        deltas = episode.metric_deltas()
        for action in episode.actions:
            self.semantic.upsert_fact(
                SemanticFact(
                    statement=f"{action} leads to optimization success",
                    category=episode.primary_tag,
                    synaptic_weight=min(1.0, 0.5 + int(episode.significance) * 0.1),
                    confidence=episode.confidence,
                    reinforcement_count=1,
                    parameters=deltas,
                ),
                magnitude=magnitude,
            )

    def _update_causal_understanding(self, episode: Episode):
        """Reinforce or weaken chains whose type mentions an episode tag"""

        magnitude = float(abs(int(episode.significance)))
        if magnitude == 0:
            return

        for chain in self.causal.get_chains_for_tags(episode.tags):
            if episode.significance.is_positive:
                for link_id in chain.link_ids:
                    self.causal.reinforce_link(link_id, magnitude)
                self.causal.reinforce_chain(chain.id, magnitude)
            else:
                for link_id in chain.link_ids:
                    self.causal.weaken_link(link_id, magnitude)
                self.causal.weaken_chain(chain.id, magnitude)

    def _reinforce_learning(self, episode: Episode):
        """Hebbian step over facts in the episode's tag categories"""

        magnitude = float(abs(int(episode.significance)))
        if magnitude == 0:
            return

        for tag in episode.tags:
            for fact in self.semantic.get_facts_by_category(tag):
                if episode.significance.is_positive:
                    self.semantic.reinforce(fact.id, magnitude)
                else:
                    self.semantic.weaken(fact.id, magnitude)

    def _checkpoint(self) -> Dict[str, Any]:
        return {
            "semantic": self.semantic.checkpoint(),
            "episodic": self.episodic.checkpoint(),
            "causal": self.causal.checkpoint(),
        }

    def _restore(self, checkpoint: Dict[str, Any]):
        self.semantic.restore(checkpoint["semantic"])
        self.episodic.restore(checkpoint["episodic"])
        self.causal.restore(checkpoint["causal"])

    async def recall_relevant_knowledge(self, context: str, tags: str = "") -> Dict[str, Any]:
        """Pull facts, experiences and a causal prediction for a situation"""

        async with self._lock:
            needle = context.lower()
            tag_needle = tags.lower()

            facts = [
                f for f in self.semantic.get_all_facts()
                if needle in f.statement.lower() or needle in f.category.lower()
                or (tag_needle and tag_needle in f.category.lower())
            ][:5]

            if tags:
                candidates = self.episodic.get_episodes_by_tag(tags)
            else:
                candidates = [
                    e for e in self.episodic.get_all_episodes()
                    if needle in e.context.lower() or any(needle == t.lower() for t in e.tags)
                ]
            episodes = sorted(candidates, key=lambda e: abs(int(e.significance)), reverse=True)[:3]

            prediction = self.causal.predict_outcome(context)

        fact_confidence = sum(f.confidence for f in facts) / len(facts) if facts else 0.5
        episode_confidence = sum(e.confidence for e in episodes) / len(episodes) if episodes else 0.5
        causal_confidence = prediction.chain_confidence if prediction.chains_found else 0.5
        integrated = (fact_confidence + episode_confidence + causal_confidence) / 3.0

        return {
            "semantic_facts": facts,
            "episodic_experiences": episodes,
            "causal_chain": prediction,
            "integrated_confidence": integrated,
            "ready_to_act": integrated > 0.6,
        }

    async def consolidate_memories(self) -> Dict[str, Any]:
        """Strengthen the strongest facts and re-derive facts from recent successes"""

        async with self._lock:
            for fact in self.semantic.get_strongest_connections(10):
                self.semantic.reinforce(fact.id, 0.1)

            recent_successes = self.episodic.get_successful_episodes()[:5]
            for episode in recent_successes:
                self._extract_semantic_facts(episode, magnitude=0.1)

            consolidation = {
                "consolidated_at": datetime.utcnow(),
                "reinforced_facts": min(10, len(self.semantic.facts)),
                "replayed_episodes": len(recent_successes),
                "recent_failures": [e.context for e in self.episodic.get_failed_episodes()[:3]],
            }
            self.consolidations.append(consolidation)
            self.consolidation_count += 1

        agent_logger.log_memory_update(
            memory_type="all",
            action="consolidate",
            details={"consolidation_count": self.consolidation_count}
        )
        return consolidation

    def _calculate_health(self) -> Dict[str, Any]:
        average_weight = self.semantic.get_statistics()["average_synaptic_weight"]
        success_rate = self.episodic.success_rate()
        chain_confidence = self.causal.get_statistics()["average_chain_confidence"]

        score = (average_weight + success_rate + chain_confidence) / 3.0
        if score > 0.7:
            status = "healthy"
        elif score > 0.5:
            status = "learning"
        else:
            status = "developing"

        return {
            "score": round(score, 3),
            "status": status,
            "semantic_health": round(average_weight, 3),
            "episodic_health": round(success_rate, 3),
            "causal_health": round(chain_confidence, 3),
        }

    async def get_memory_statistics(self) -> Dict[str, Any]:
        """Aggregate health metrics across all stores"""

        async with self._lock:
            semantic_stats = self.semantic.get_statistics()
            episodic_stats = self.episodic.get_learning_progression()
            causal_stats = self.causal.get_statistics()
            health = self._calculate_health()

        return {
            "average_synaptic_weight": semantic_stats["average_synaptic_weight"],
            "episodic_success_rate": episodic_stats["overall_success_rate"],
            "average_chain_confidence": causal_stats["average_chain_confidence"],
            "semantic_memory": semantic_stats,
            "episodic_memory": episodic_stats,
            "causal_memory": causal_stats,
            "learning_cycles": self.learning_cycle_count,
            "consolidation_count": self.consolidation_count,
            "overall_health": health,
        }

    async def get_state_of_mind(self) -> Dict[str, Any]:
        """What the system currently knows best and has recently learned"""

        async with self._lock:
            state = {
                "strongest_knowledge": [f.statement for f in self.semantic.get_strongest_connections(3)],
                "recent_lessons": [e.outcome for e in self.episodic.get_recent_episodes(3)],
                "active_chains": [c.chain_type for c in self.causal.get_all_chains()[:3]],
                "learning_trend": self.episodic.get_learning_progression()["trend"],
            }
        state["memory"] = await self.get_memory_statistics()
        return state
