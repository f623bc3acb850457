from typing import Dict, List, Any, Optional, Iterable, Tuple
from datetime import timedelta
import copy
import math
import structlog

from workload_tuner.domain.models.memory import (
    CausalNode,
    CausalLink,
    CausalException,
    CausalChain,
    CausalPrediction,
)

logger = structlog.get_logger(__name__)

STRENGTH_FLOOR = 0.1
STRENGTH_CEILING = 1.0
RELIABILITY_FLOOR = 10.0
RELIABILITY_CEILING = 100.0

LINK_STRENGTH_STEP = 0.05
LINK_RELIABILITY_GAIN = 2.0
LINK_RELIABILITY_LOSS = 3.0
CHAIN_CONFIDENCE_GAIN = 0.02
CHAIN_CONFIDENCE_LOSS = 0.03

SEED_STRENGTH = 0.85
SEED_RELIABILITY = 90.0
SEED_OBSERVATIONS = 10


class UnknownLinkError(ValueError):
    """Raised when a causal link id is not in the store"""


class UnknownChainError(ValueError):
    """Raised when a causal chain id is not in the store"""


def _valid_magnitude(magnitude: float) -> bool:
    return isinstance(magnitude, (int, float)) and math.isfinite(magnitude) and magnitude >= 0


def _clamp(value: float, low: float, high: float) -> float:
    return min(high, max(low, value))


class CausalMemory:
    """Cause -> effect graph stored as flat id-keyed maps.

    Nodes, links, exceptions and chains reference each other by id only.
    Chains are built once from the seed and afterwards only reinforced or
    weakened.
    """

    def __init__(self, seed: bool = True):
        self.nodes: Dict[str, CausalNode] = {}
        self.links: Dict[str, CausalLink] = {}
        self.exceptions: Dict[str, CausalException] = {}
        self.chains: Dict[str, CausalChain] = {}
        if seed:
            self._initialize_base_chains()

    def _initialize_base_chains(self):
        """Seed the foundational cause -> effect chains"""

        self._build_chain("Gaming Performance Degradation Chain", [
            "SearchIndexer.exe is active",
            "Disk I/O scans continuous files",
            "CPU cycles consumed by indexing",
            "Available cycles reduced for game",
            "Game performance decreases",
        ])
        self._build_chain("Network Latency Chain", [
            "OneDrive sync processes data",
            "Network bandwidth consumed",
            "Packet priority reduced for gaming",
            "Network latency increases",
            "Gaming responsiveness decreases",
        ])
        self._build_chain("System Responsiveness Chain", [
            "Windows Update (TiWorker) runs",
            "System interrupts increase",
            "Real-time thread scheduling affected",
            "Input latency increases",
            "User perceives game lag",
        ])
        self._build_chain("Power Plan Performance Chain", [
            "Power plan changed to High Performance",
            "CPU base clock maintained at max",
            "Thermal headroom available",
            "Sustained performance possible",
            "FPS stability improves",
        ])

        logger.debug("Causal memory seeded", chains=len(self.chains), links=len(self.links))

    def _build_chain(self, chain_type: str, events: List[str]) -> CausalChain:
        chain = CausalChain(
            chain_type=chain_type,
            confidence=SEED_STRENGTH,
            verification_count=SEED_OBSERVATIONS,
        )

        previous: Optional[CausalNode] = None
        for event in events:
            node = CausalNode(
                event=event,
                category=chain_type,
                causal_strength=SEED_STRENGTH,
                observation_count=SEED_OBSERVATIONS,
            )
            self.nodes[node.id] = node
            chain.node_ids.append(node.id)

            if previous is not None:
                link = CausalLink(
                    cause_node_id=previous.id,
                    effect_node_id=node.id,
                    strength=SEED_STRENGTH,
                    reliability_percent=SEED_RELIABILITY,
                    observation_count=SEED_OBSERVATIONS,
                    typical_latency=timedelta(milliseconds=100),
                )
                self.links[link.id] = link
                chain.link_ids.append(link.id)

            previous = node

        self.chains[chain.id] = chain
        return chain

    def add_node(self, event: str, category: str = "") -> str:
        """Add a causal node and return its id"""

        node = CausalNode(event=event, category=category)
        self.nodes[node.id] = node
        return node.id

    def link_nodes(self, cause_node_id: str, effect_node_id: str, initial_strength: float = 0.5) -> str:
        """Link two events causally and return the link id"""

        for node_id in (cause_node_id, effect_node_id):
            if node_id not in self.nodes:
                raise ValueError(f"Unknown causal node: {node_id}")

        link = CausalLink(
            cause_node_id=cause_node_id,
            effect_node_id=effect_node_id,
            strength=_clamp(initial_strength, STRENGTH_FLOOR, STRENGTH_CEILING),
        )
        self.links[link.id] = link

        logger.debug("Created causal link", cause=cause_node_id, effect=effect_node_id)
        return link.id

    def reinforce_link(self, link_id: str, magnitude: float = 1.0) -> CausalLink:
        """Strengthen a link when an outcome confirms it"""

        link = self._get_link(link_id)
        if not _valid_magnitude(magnitude):
            logger.warning("Rejected link reinforcement", link_id=link_id, magnitude=magnitude)
            return link

        link.observation_count += 1
        link.strength = _clamp(link.strength + LINK_STRENGTH_STEP * magnitude, STRENGTH_FLOOR, STRENGTH_CEILING)
        link.reliability_percent = _clamp(
            link.reliability_percent + LINK_RELIABILITY_GAIN * magnitude, RELIABILITY_FLOOR, RELIABILITY_CEILING
        )
        return link

    def weaken_link(self, link_id: str, magnitude: float = 1.0) -> CausalLink:
        """Weaken a link when an outcome contradicts it"""

        link = self._get_link(link_id)
        if not _valid_magnitude(magnitude):
            logger.warning("Rejected link weakening", link_id=link_id, magnitude=magnitude)
            return link

        link.strength = _clamp(link.strength - LINK_STRENGTH_STEP * magnitude, STRENGTH_FLOOR, STRENGTH_CEILING)
        link.reliability_percent = _clamp(
            link.reliability_percent - LINK_RELIABILITY_LOSS * magnitude, RELIABILITY_FLOOR, RELIABILITY_CEILING
        )
        return link

    def reinforce_chain(self, chain_id: str, magnitude: float = 1.0) -> CausalChain:
        """Raise chain confidence and count one more verification"""

        chain = self._get_chain(chain_id)
        if not _valid_magnitude(magnitude):
            logger.warning("Rejected chain reinforcement", chain_id=chain_id, magnitude=magnitude)
            return chain

        chain.verification_count += 1
        chain.confidence = _clamp(chain.confidence + CHAIN_CONFIDENCE_GAIN * magnitude, STRENGTH_FLOOR, STRENGTH_CEILING)
        return chain

    def weaken_chain(self, chain_id: str, magnitude: float = 1.0) -> CausalChain:
        chain = self._get_chain(chain_id)
        if not _valid_magnitude(magnitude):
            logger.warning("Rejected chain weakening", chain_id=chain_id, magnitude=magnitude)
            return chain

        chain.confidence = _clamp(chain.confidence - CHAIN_CONFIDENCE_LOSS * magnitude, STRENGTH_FLOOR, STRENGTH_CEILING)
        return chain

    def add_exception(self, link_id: str, condition: str, reason: str = "", confidence: float = 0.8) -> str:
        """Attach a condition under which the link should be disregarded"""

        link = self._get_link(link_id)
        exception = CausalException(
            causal_link_id=link_id,
            condition=condition,
            reason=reason,
            confidence=_clamp(confidence, 0.0, 1.0),
        )
        self.exceptions[exception.id] = exception
        link.exception_ids.append(exception.id)

        logger.debug("Added causal exception", link_id=link_id, condition=condition)
        return exception.id

    def get_exceptions_for_link(self, link_id: str) -> List[CausalException]:
        link = self.links.get(link_id)
        if link is None:
            return []
        found = [self.exceptions[i] for i in link.exception_ids if i in self.exceptions]
        return sorted(found, key=lambda e: e.confidence, reverse=True)

    def get_all_chains(self) -> List[CausalChain]:
        """Chains ordered by confidence weighted by verifications"""
        return sorted(self.chains.values(), key=lambda c: c.confidence * c.verification_count, reverse=True)

    def get_chains_by_type(self, fragment: str) -> List[CausalChain]:
        """Chains whose type mentions the fragment, most confident first"""

        needle = fragment.lower()
        matching = [c for c in self.chains.values() if needle and needle in c.chain_type.lower()]
        return sorted(matching, key=lambda c: c.confidence, reverse=True)

    def get_chains_for_tags(self, tags: Iterable[str]) -> List[CausalChain]:
        """Chains whose type mentions any of the tags"""

        seen: Dict[str, CausalChain] = {}
        for tag in tags:
            for chain in self.get_chains_by_type(tag):
                seen.setdefault(chain.id, chain)
        return list(seen.values())

    def get_all_links(self) -> List[CausalLink]:
        return sorted(self.links.values(), key=lambda l: l.strength * l.reliability_percent, reverse=True)

    def trace_chain(self, chain_id: str) -> List[str]:
        """Ordered event names of a chain"""

        chain = self.chains.get(chain_id)
        if chain is None:
            return []
        return [self.nodes[node_id].event for node_id in chain.node_ids if node_id in self.nodes]

    def predict_outcome(self, event: str, active_conditions: Optional[Iterable[str]] = None) -> CausalPrediction:
        """Predict what follows an event using the most confident matching chain.

        If a link along the chain carries an exception whose condition is in
        ``active_conditions``, the trace stops at that link's cause.
        """

        needle = event.lower()
        relevant = sorted(
            (
                chain for chain in self.chains.values()
                if any(needle in self.nodes[node_id].event.lower() for node_id in chain.node_ids)
            ),
            key=lambda c: c.confidence,
            reverse=True,
        )

        if not needle or not relevant:
            return CausalPrediction(chains_found=0)

        top = relevant[0]
        trace = self.trace_chain(top.id)
        trace, applied = self._apply_exceptions(top, trace, active_conditions)

        return CausalPrediction(
            chains_found=len(relevant),
            chain_id=top.id,
            chain_type=top.chain_type,
            predicted_outcome=trace[-1] if trace else None,
            full_chain=trace,
            chain_confidence=top.confidence,
            chain_verifications=top.verification_count,
            alternative_outcomes=[c.chain_type for c in relevant[1:]],
            exceptions_applied=applied,
        )

    def _apply_exceptions(
        self,
        chain: CausalChain,
        trace: List[str],
        active_conditions: Optional[Iterable[str]],
    ) -> Tuple[List[str], List[str]]:
        conditions = {c.lower() for c in (active_conditions or [])}
        if not conditions:
            return trace, []

        for index, link_id in enumerate(chain.link_ids):
            hits = [
                e.condition for e in self.get_exceptions_for_link(link_id)
                if e.condition.lower() in conditions
            ]
            if hits:
                # link i joins node i to node i + 1
                return trace[: index + 1], hits
        return trace, []

    def get_strongest_relationships(self, count: int = 10) -> List[Tuple[str, str, float]]:
        """(cause, effect, strength) for the most trusted links"""

        ranked = sorted(
            self.links.values(),
            key=lambda l: l.strength * (l.reliability_percent / 100.0),
            reverse=True,
        )[:count]
        return [(self.nodes[l.cause_node_id].event, self.nodes[l.effect_node_id].event, l.strength) for l in ranked]

    def _get_link(self, link_id: str) -> CausalLink:
        link = self.links.get(link_id)
        if link is None:
            raise UnknownLinkError(link_id)
        return link

    def _get_chain(self, chain_id: str) -> CausalChain:
        chain = self.chains.get(chain_id)
        if chain is None:
            raise UnknownChainError(chain_id)
        return chain

    def checkpoint(self) -> Dict[str, Any]:
        """Capture store state for rollback"""
        return copy.deepcopy({
            "nodes": self.nodes,
            "links": self.links,
            "exceptions": self.exceptions,
            "chains": self.chains,
        })

    def restore(self, state: Dict[str, Any]):
        """Restore a captured state"""
        self.nodes = state["nodes"]
        self.links = state["links"]
        self.exceptions = state["exceptions"]
        self.chains = state["chains"]

    def get_statistics(self) -> Dict[str, Any]:
        """Get causal memory statistics"""

        links = list(self.links.values())
        chains = list(self.chains.values())
        strongest = max(chains, key=lambda c: c.confidence) if chains else None

        return {
            "total_nodes": len(self.nodes),
            "total_links": len(links),
            "total_exceptions": len(self.exceptions),
            "total_chains": len(chains),
            "average_link_strength": sum(l.strength for l in links) / len(links) if links else 0.0,
            "average_chain_confidence": sum(c.confidence for c in chains) / len(chains) if chains else 0.0,
            "strongest_chain": strongest.chain_type if strongest else None,
            "chain_types": sorted({c.chain_type for c in chains}),
        }
