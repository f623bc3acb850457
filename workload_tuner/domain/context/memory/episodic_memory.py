from typing import Deque, Dict, List, Any, Optional, Set
from datetime import datetime, timedelta
from collections import defaultdict, deque
import structlog

from workload_tuner.domain.models.memory import Episode, EmotionalSignificance

logger = structlog.get_logger(__name__)


class EpisodicMemory:
    """Tagged, emotionally weighted experiences.

    Episodes are only ever appended. With a ``capacity``, ``evict_overflow``
    drops the oldest ones; it is never called inside a learning transaction,
    so a checkpoint only needs the lengths of the episode log and tag lists.
    """

    def __init__(self, seed: bool = True, capacity: Optional[int] = None):
        self.capacity = capacity
        self.episodes: Deque[Episode] = deque()
        self.episodes_by_tag: Dict[str, Deque[Episode]] = defaultdict(deque)
        self._episode_ids: Set[str] = set()
        if seed:
            self._initialize_base_experiences()

    def _initialize_base_experiences(self):
        """Seed the experiences later learning builds on"""

        self.record(Episode(
            context="User launched Valorant on standard Windows setup with many background services",
            actions=(
                "Disabled SearchIndexer.exe",
                "Disabled Windows Update (TiWorker.exe)",
                "Disabled OneDrive sync",
                "Applied High Performance power plan",
            ),
            outcome="System became responsive, gaming latency improved significantly",
            metrics={"FPS": (120, 185), "Latency": (45, 12), "CPUUsage": (65, 35), "RAMAvailable": (2048, 4500)},
            significance=EmotionalSignificance.VERY_POSITIVE,
            confidence=0.95,
            tags=("Valorant", "Gaming", "Success", "ServiceDisabling"),
            user_approved=True,
            notes="User stayed in-game for 3+ hours. Template for gaming optimizations.",
        ))

        self.record(Episode(
            context="Attempted very aggressive optimization on development machine",
            actions=(
                "Disabled VS Code background features",
                "Disabled all non-critical services",
                "Reduced system allocations",
            ),
            outcome="Development tools became unstable, user frustrated",
            metrics={"IDEResponseTime": (200, 1200), "DevelopmentProductivity": (100, 30)},
            significance=EmotionalSignificance.VERY_NEGATIVE,
            confidence=0.90,
            tags=("Development", "Failure", "TooAggressive", "Lesson"),
            notes="Aggressive optimization breaks workflow tools.",
        ))

        self.record(Episode(
            context="User streaming with OBS. Applied streaming-specific optimizations.",
            actions=(
                "Set CPU affinity for streaming threads",
                "Disabled competing GPU tasks",
                "Prioritized network bandwidth for streaming",
            ),
            outcome="Stream became smooth, no dropped frames",
            metrics={"StreamFPS": (30, 60), "DroppedFrames": (120, 2), "BitrateMbps": (3, 6), "CpuUsage": (80, 45)},
            significance=EmotionalSignificance.POSITIVE,
            confidence=0.85,
            tags=("Streaming", "OBS", "Success", "ContextAware"),
            user_approved=True,
        ))

        self.record(Episode(
            context="Suggested disabling Discord for gaming optimization",
            actions=("Recommended Discord disable for +2% FPS",),
            outcome="User rejected optimization, preferred Discord availability",
            metrics={"FPS": (180, 183), "UserSatisfaction": (100, 20)},
            significance=EmotionalSignificance.NEGATIVE,
            confidence=0.88,
            tags=("UserPreference", "Discord", "Lesson", "PersonalChoice"),
            notes="Small FPS gains don't matter if the user loses valued functionality.",
        ))

    def record(self, episode: Episode):
        """Append an episode and index it by tag"""

        self.episodes.append(episode)
        self._episode_ids.add(episode.id)
        for tag in dict.fromkeys(episode.tags):
            self.episodes_by_tag[tag].append(episode)

        logger.debug(
            "Recorded episode",
            episode_id=episode.id,
            context=episode.context[:50],
            significance=episode.significance.name,
        )

    def contains(self, episode_id: str) -> bool:
        return episode_id in self._episode_ids

    def evict_overflow(self) -> List[Episode]:
        """Drop the oldest episodes beyond capacity and return them"""

        evicted: List[Episode] = []
        while self.capacity is not None and len(self.episodes) > self.capacity:
            episode = self.episodes.popleft()
            self._episode_ids.discard(episode.id)
            for tag in dict.fromkeys(episode.tags):
                tagged = self.episodes_by_tag[tag]
                tagged.popleft()
                if not tagged:
                    del self.episodes_by_tag[tag]
            evicted.append(episode)

        if evicted:
            logger.debug("Evicted oldest episodes", count=len(evicted), capacity=self.capacity)
        return evicted

    def get_episodes_by_tag(self, tag: str) -> List[Episode]:
        """Episodes with a tag, newest first"""
        return sorted(self.episodes_by_tag.get(tag, []), key=lambda e: e.timestamp, reverse=True)

    def get_recent_episodes(self, count: int = 10) -> List[Episode]:
        return sorted(self.episodes, key=lambda e: e.timestamp, reverse=True)[:count]

    def get_by_significance(self, significance: Optional[EmotionalSignificance] = None) -> List[Episode]:
        """Episodes filtered by significance, most impactful first"""

        episodes = self.episodes
        if significance is not None:
            episodes = [e for e in episodes if e.significance == significance]
        return sorted(episodes, key=lambda e: abs(int(e.significance)), reverse=True)

    def get_successful_episodes(self) -> List[Episode]:
        return sorted(
            (e for e in self.episodes if e.significance.is_positive),
            key=lambda e: e.timestamp,
            reverse=True,
        )

    def get_failed_episodes(self) -> List[Episode]:
        return sorted(
            (e for e in self.episodes if e.significance.is_negative),
            key=lambda e: e.timestamp,
            reverse=True,
        )

    def get_episodes_by_action(self, action: str) -> List[Episode]:
        """Episodes where any action contains the given text"""

        needle = action.lower()
        return sorted(
            (e for e in self.episodes if any(needle in a.lower() for a in e.actions)),
            key=lambda e: e.timestamp,
            reverse=True,
        )

    def extract_lessons(self, tag: str) -> Dict[str, Any]:
        """Aggregate which actions co-occur with good and bad outcomes for a tag"""

        tagged = self.get_episodes_by_tag(tag)
        if not tagged:
            return {"tag": tag, "no_episodes_found": True}

        successful = [e for e in tagged if e.significance.is_positive]
        failed = [e for e in tagged if e.significance.is_negative]

        return {
            "tag": tag,
            "total_episodes": len(tagged),
            "success_rate": len(successful) / len(tagged),
            "successful_actions": self._count_actions(successful),
            "failed_actions": self._count_actions(failed),
            "average_metric_gains": self._average_metric_gains(successful),
            "average_metric_losses": self._average_metric_gains(failed),
        }

    @staticmethod
    def _count_actions(episodes: List[Episode]) -> List[tuple]:
        counts: Dict[str, int] = {}
        for episode in episodes:
            for action in episode.actions:
                counts[action] = counts.get(action, 0) + 1
        return sorted(counts.items(), key=lambda kv: kv[1], reverse=True)

    @staticmethod
    def _average_metric_gains(episodes: List[Episode]) -> Dict[str, float]:
        gains: Dict[str, List[float]] = defaultdict(list)
        for episode in episodes:
            for name, delta in episode.metric_deltas().items():
                gains[name].append(delta)
        return {name: sum(values) / len(values) for name, values in gains.items()}

    def success_rate(self) -> float:
        """Share of all episodes with positive significance"""
        if not self.episodes:
            return 0.0
        return sum(1 for e in self.episodes if e.significance.is_positive) / len(self.episodes)

    def get_learning_progression(self) -> Dict[str, Any]:
        """Success trend over the last week versus the last month"""

        now = datetime.utcnow()
        recent_month = [e for e in self.episodes if e.timestamp > now - timedelta(days=30)]
        recent_week = [e for e in self.episodes if e.timestamp > now - timedelta(days=7)]

        def rate(episodes: List[Episode]) -> float:
            if not episodes:
                return 0.0
            return sum(1 for e in episodes if e.significance.is_positive) / len(episodes)

        monthly = rate(recent_month)
        weekly = rate(recent_week)

        return {
            "total_episodes": len(self.episodes),
            "recent_month_episodes": len(recent_month),
            "recent_week_episodes": len(recent_week),
            "overall_success_rate": self.success_rate(),
            "monthly_success_rate": monthly,
            "weekly_success_rate": weekly,
            "user_approved_count": sum(1 for e in self.episodes if e.user_approved),
            "trend": "improving" if weekly > monthly else "stable",
        }

    def get_all_episodes(self) -> List[Episode]:
        return sorted(self.episodes, key=lambda e: e.timestamp, reverse=True)

    def checkpoint(self) -> Dict[str, Any]:
        """Capture store state for rollback"""
        return {
            "episode_count": len(self.episodes),
            "tag_counts": {tag: len(tagged) for tag, tagged in self.episodes_by_tag.items()},
        }

    def restore(self, state: Dict[str, Any]):
        """Drop everything recorded since the checkpoint"""

        while len(self.episodes) > state["episode_count"]:
            self._episode_ids.discard(self.episodes.pop().id)

        for tag in list(self.episodes_by_tag):
            tagged = self.episodes_by_tag[tag]
            keep = state["tag_counts"].get(tag, 0)
            while len(tagged) > keep:
                tagged.pop()
            if not tagged:
                del self.episodes_by_tag[tag]
