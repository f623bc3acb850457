from typing import Dict, List, Optional, Sequence, Tuple, Type
from pydantic import BaseModel, Field
import structlog

from workload_tuner.domain.models.snapshots import ActivitySnapshot
from .base_subagent import BaseTaskAgent
from .gaming_agent import GamingAgent
from .streaming_agent import StreamingAgent
from .development_agent import DevelopmentAgent
from .content_creation_agent import ContentCreationAgent

logger = structlog.get_logger(__name__)


class WorkloadSignature(BaseModel):
    """Process keywords that mark a workload as running"""
    agent_type: str
    keywords: Tuple[str, ...] = Field(description="Case-insensitive substrings of process names")

    def match(self, activity: ActivitySnapshot) -> Optional[str]:
        """Name of the first running process carrying a keyword, or None"""

        matched = activity.first_matching_process(list(self.keywords))
        if matched:
            return matched
        if activity.active_process and any(k.lower() in activity.active_process.lower() for k in self.keywords):
            return activity.active_process
        return None


class AgentRegistry:
    """Registry of unit classes keyed by the workload they serve"""

    def __init__(self, include_defaults: bool = True):
        self.agent_classes: Dict[str, Type[BaseTaskAgent]] = {}
        self.signatures: Dict[str, WorkloadSignature] = {}
        if include_defaults:
            self._register_defaults()

    def _register_defaults(self):
        for agent_class in (GamingAgent, StreamingAgent, DevelopmentAgent, ContentCreationAgent):
            self.register(agent_class)

    def register(self, agent_class: Type[BaseTaskAgent], keywords: Optional[Sequence[str]] = None):
        """Register a unit class, by default under its own process keywords"""

        agent_type = agent_class.AGENT_TYPE
        if not agent_type:
            raise ValueError(f"{agent_class.__name__} does not declare AGENT_TYPE")

        keywords = tuple(keywords or agent_class.PROCESS_KEYWORDS)
        if not keywords:
            raise ValueError(f"{agent_class.__name__} has no process keywords")

        self.agent_classes[agent_type] = agent_class
        self.signatures[agent_type] = WorkloadSignature(agent_type=agent_type, keywords=keywords)
        logger.debug("Registered unit class", agent_type=agent_type, keywords=keywords)

    def get_agent_class(self, agent_type: str) -> Optional[Type[BaseTaskAgent]]:
        return self.agent_classes.get(agent_type)

    def get_signatures(self) -> List[WorkloadSignature]:
        """Signatures in registration order"""
        return list(self.signatures.values())

    def match(self, activity: ActivitySnapshot) -> Dict[str, str]:
        """Active workloads: agent_type -> matching process name"""

        detected: Dict[str, str] = {}
        for signature in self.signatures.values():
            process = signature.match(activity)
            if process:
                detected[signature.agent_type] = process
        return detected
