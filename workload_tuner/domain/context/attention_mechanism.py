from typing import Dict, List, Any, Optional, Sequence, Tuple
from collections import Counter, deque
import math
import statistics
import structlog

from workload_tuner.domain.models.memory import AttentionVector
from .memory_system import MemorySystem

logger = structlog.get_logger(__name__)

DEFAULT_KEYS = {"General": 0.6, "Performance": 0.5, "Optimization": 0.5}

KEYWORD_RULES: List[Tuple[Tuple[str, ...], Dict[str, float]]] = [
    (("valorant", "gaming"), {"Gaming": 0.95, "FPS": 0.90, "Latency": 0.85, "Network": 0.75, "CPU": 0.70}),
    (("stream",), {"Streaming": 0.95, "Bandwidth": 0.85, "GPU": 0.80, "CPU": 0.75}),
    (("develop", "code"), {"Development": 0.95, "Memory": 0.85, "CompileSpeed": 0.80, "Responsiveness": 0.75}),
    (("render", "content", "premiere", "blender", "davinci"),
     {"ContentCreation": 0.95, "Rendering": 0.90, "GPU": 0.85, "StorageIO": 0.75}),
]

# Per-query perspectives for multi-head attention
PERSPECTIVES: List[Tuple[Tuple[str, ...], List[Dict[str, float]]]] = [
    (("valorant",), [
        {"FPS": 0.95, "GPU": 0.85, "CPU": 0.70, "Memory": 0.60},
        {"Latency": 0.95, "Network": 0.90, "CPU": 0.75, "Interrupts": 0.70},
        {"SystemStability": 0.95, "Temperature": 0.80, "Memory": 0.75, "Crashes": 0.70},
    ]),
]


def attention_score(normalized_weight: float) -> float:
    """Saturating score of a normalized key weight: e^2w / (1 + e^2w), capped at 1"""
    return min(1.0, 1.0 / (1.0 + math.exp(-2.0 * normalized_weight)))


class AttentionMechanism:
    """Query-scoped focus over memory with a finite number of active vectors"""

    def __init__(
        self,
        memory: MemorySystem,
        max_active: int = 3,
        relevance_floor: float = 0.3,
        dampening: float = 0.1,
        history_limit: int = 100,
    ):
        if max_active < 1:
            raise ValueError("max_active must be at least 1")

        self.memory = memory
        self.max_active = max_active
        self.relevance_floor = relevance_floor
        self.dampening = dampening
        self.rules: List[Tuple[Tuple[str, ...], Dict[str, float]]] = list(KEYWORD_RULES)
        self.active_vectors: List[AttentionVector] = []
        self.history: deque = deque(maxlen=history_limit)

    def register_rule(self, keywords: Sequence[str], key_weights: Dict[str, float]):
        """Add a keyword rule; every rule whose keyword occurs in the query contributes its keys"""

        if not keywords or not key_weights:
            raise ValueError("A rule needs at least one keyword and one key")
        self.rules.append((tuple(k.lower() for k in keywords), dict(key_weights)))

    def derive_keys(self, query: str) -> Dict[str, float]:
        """Topic keys for a query, defaults when no rule matches"""

        lowered = query.lower()
        keys: Dict[str, float] = {}
        for keywords, weights in self.rules:
            if any(keyword in lowered for keyword in keywords):
                keys.update(weights)
        return keys or dict(DEFAULT_KEYS)

    def compute_scores(self, key_weights: Dict[str, float]) -> Tuple[Dict[str, float], float]:
        """Scores above the relevance floor and the resulting confidence"""

        total = sum(key_weights.values())
        if not math.isfinite(total) or total <= 0:
            raise ValueError("Key weights must sum to a positive finite value")

        scores = {
            key: attention_score(weight / total)
            for key, weight in key_weights.items()
        }
        relevant = {key: score for key, score in scores.items() if score >= self.relevance_floor}
        if not relevant:
            return {}, 0.0

        values = list(relevant.values())
        confidence = max(values) - statistics.pvariance(values) * self.dampening
        return relevant, max(0.0, min(1.0, confidence))

    async def create_attention(
        self,
        query: str,
        key_weights: Optional[Dict[str, float]] = None,
        urgent: bool = False,
    ) -> AttentionVector:
        """Build an attention vector for a query and try to make it active"""

        vector = await self._build_vector(query, key_weights, urgent)
        self._admit(vector)
        return vector

    async def _build_vector(
        self,
        query: str,
        key_weights: Optional[Dict[str, float]],
        urgent: bool,
    ) -> AttentionVector:
        weights = dict(key_weights) if key_weights else self.derive_keys(query)
        scores, confidence = self.compute_scores(weights)

        value: Dict[str, Any] = {}
        related: List[str] = []
        for key, _ in sorted(scores.items(), key=lambda kv: kv[1], reverse=True):
            knowledge = await self.memory.recall_relevant_knowledge(key, tags=key)
            value[f"facts_{key}"] = knowledge["semantic_facts"]
            value[f"experiences_{key}"] = knowledge["episodic_experiences"]
            value[f"causality_{key}"] = knowledge["causal_chain"]
            related.extend(f.id for f in knowledge["semantic_facts"])
            related.extend(e.id for e in knowledge["episodic_experiences"])

        return AttentionVector(
            query=query,
            key_weights=weights,
            attention_scores=scores,
            related_memory_ids=list(dict.fromkeys(related)),
            value=value,
            confidence=confidence,
            urgent=urgent,
        )

    def _admit(self, vector: AttentionVector) -> bool:
        """Add to the active set, evicting the weakest vector when full"""

        self.history.append(vector)

        if len(self.active_vectors) < self.max_active:
            self.active_vectors.append(vector)
            return True

        weakest = min(self.active_vectors, key=lambda v: v.confidence)
        if vector.urgent or vector.confidence > weakest.confidence:
            self.active_vectors.remove(weakest)
            self.active_vectors.append(vector)
            logger.debug(
                "Attention vector evicted",
                evicted_query=weakest.query,
                new_query=vector.query,
                urgent=vector.urgent,
            )
            return True

        return False

    async def shift_attention(self, query: str, urgency: float = 0.8) -> AttentionVector:
        """Refocus on a new query; urgency above 0.7 forces it into the active set"""

        urgency = max(0.0, min(1.0, urgency))
        vector = await self._build_vector(query, None, urgent=urgency > 0.7)
        vector = vector.model_copy(update={"confidence": vector.confidence * urgency})
        self._admit(vector)

        logger.info("Shifted attention", query=query, urgency=urgency)
        return vector

    def generate_perspectives(self, query: str, count: int) -> List[Dict[str, float]]:
        lowered = query.lower()
        perspectives: List[Dict[str, float]] = []
        for keywords, views in PERSPECTIVES:
            if any(keyword in lowered for keyword in keywords):
                perspectives.extend(dict(view) for view in views)

        while len(perspectives) < count:
            perspectives.append(self.derive_keys(query))
        return perspectives[:count]

    async def create_multi_head_attention(self, query: str, head_count: int = 3) -> List[AttentionVector]:
        """Several parallel views of the same query"""

        count = max(1, min(head_count, self.max_active))
        return [
            await self.create_attention(query, perspective)
            for perspective in self.generate_perspectives(query, count)
        ]

    @staticmethod
    def integrate_attention(heads: List[AttentionVector]) -> Dict[str, Any]:
        """Average scores and confidence across heads and merge their recalled values"""

        if not heads:
            return {"error": "No attention heads provided"}

        integrated_scores: Dict[str, float] = {}
        integrated_value: Dict[str, List[Any]] = {}
        for head in heads:
            for key, score in head.attention_scores.items():
                integrated_scores[key] = integrated_scores.get(key, 0.0) + score / len(heads)
            for key, value in head.value.items():
                integrated_value.setdefault(key, []).append(value)

        return {
            "integrated_attention_scores": integrated_scores,
            "average_confidence": sum(h.confidence for h in heads) / len(heads),
            "integrated_value": integrated_value,
            "head_count": len(heads),
            "query": heads[0].query,
        }

    def get_current_focus(self) -> List[Dict[str, Any]]:
        return [
            {
                "focus": v.query,
                "confidence": v.confidence,
                "attention_scores": v.attention_scores,
                "related_memory_count": len(v.related_memory_ids),
                "urgent": v.urgent,
            }
            for v in self.active_vectors
        ]

    def get_attention_history(self, limit: int = 10) -> List[AttentionVector]:
        return sorted(self.history, key=lambda v: v.created_at, reverse=True)[:limit]

    def predict_next_attention(self) -> Optional[str]:
        """Most common key over the last five vectors"""

        if not self.history:
            return None
        recent = list(self.history)[-5:]
        counts = Counter(key for v in recent for key in v.attention_scores)
        return counts.most_common(1)[0][0] if counts else None

    def get_attention_statistics(self) -> Dict[str, Any]:
        frequency = Counter(key for v in self.history for key in v.attention_scores)
        average = sum(v.confidence for v in self.history) / len(self.history) if self.history else 0.0

        return {
            "total_attention_vectors": len(self.history),
            "average_confidence": round(average, 3),
            "active_vectors": len(self.active_vectors),
            "max_active_vectors": self.max_active,
            "focus_frequency": frequency.most_common(),
            "most_frequent_focus": frequency.most_common(1)[0][0] if frequency else None,
        }
