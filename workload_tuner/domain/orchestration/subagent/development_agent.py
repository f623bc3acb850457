from typing import Dict, Any, List

from workload_tuner.domain.models.agent_state import Recommendation, ResourceRequirements
from .base_subagent import BaseTaskAgent, ActionSpec


class DevelopmentAgent(BaseTaskAgent):
    """Build times, IDE responsiveness and memory pressure while coding"""

    AGENT_TYPE = "Development"
    AGENT_NAME = "Development Optimizer"
    DESCRIPTION = "Shortens compile times and keeps the IDE responsive"
    PROCESS_KEYWORDS = ("devenv", "visual studio", "code", "rider", "pycharm")

    REQUIREMENTS = ResourceRequirements(
        agent_type="Development",
        cpu=0.40,
        gpu=0.05,
        ram=0.50,
        network=0.10,
        storage_io=0.30,
        priority=0.8,
        conflicts_with={"Gaming", "Video Rendering"},
    )

    ACTIONS = [
        ActionSpec(name="EnableIncrementalBuild", message="Enabled incremental build optimization", improvement=40, metric="CompileTime"),
        ActionSpec(name="OptimizeProjectReferences", message="Optimized project references and dependencies", improvement=15, metric="CompileTime"),
        ActionSpec(name="CloseUnusedProjects", message="Closed unused projects", improvement=25, metric="RAMUsage"),
        ActionSpec(name="IncreasePageFile", message="Increased virtual memory page file", improvement=20, metric="RAMUsage"),
        ActionSpec(name="StopUnusedServices", message="Stopped unused services", improvement=30, metric="SystemResponsiveness"),
        ActionSpec(name="OptimizeStartupTasks", message="Optimized startup tasks and services", improvement=25, metric="SystemResponsiveness"),
        ActionSpec(name="DisableUnnecessaryExtensions", message="Disabled unnecessary Visual Studio extensions", improvement=15, metric="CompileTime"),
        ActionSpec(name="EnableParallelBuilds", message="Enabled parallel project builds", improvement=30, metric="CompileTime"),
        ActionSpec(name="OptimizeExtensions", message="Optimized VS Code extensions", improvement=20, metric="SystemResponsiveness"),
        ActionSpec(name="EnableTypescriptIncrementalBuild", message="Enabled TypeScript incremental compilation", improvement=25, metric="CompileTime"),
    ]

    async def _reason(self, scenario: str, context: Dict[str, Any]) -> Recommendation:
        activity = self.activity_from(context)

        ide = str(context.get("ide") or activity.first_matching_process(list(self.PROCESS_KEYWORDS)) or "Unknown")
        open_projects = int(self.metric_from(context, "open_projects"))
        compile_time = self.metric_from(context, "compile_time")
        running_services = int(self.metric_from(context, "running_services"))
        ram_usage = self.metric_from(context, "ram_usage")

        actions: List[str] = []
        metric = ""
        expected = 0.0

        if compile_time > 30:
            actions += ["EnableIncrementalBuild", "OptimizeProjectReferences"]
            metric = "CompileTime"
            expected = 40
        if ram_usage > 85 and open_projects > 2:
            actions += ["CloseUnusedProjects", "IncreasePageFile"]
            metric = "RAMUsage"
            expected = 25
        if running_services > 10:
            actions += ["StopUnusedServices", "OptimizeStartupTasks"]
            metric = "SystemResponsiveness"
            expected = 30

        lowered = ide.lower()
        if "visual studio" in lowered or "devenv" in lowered:
            actions += ["DisableUnnecessaryExtensions", "EnableParallelBuilds"]
        elif "vs code" in lowered or "code" in lowered:
            actions += ["OptimizeExtensions", "EnableTypescriptIncrementalBuild"]

        return Recommendation(
            title=f"Development Optimization for {ide}",
            description="Improving build times and IDE responsiveness",
            reasoning=(
                f"IDE {ide}, {open_projects} open projects, compile time {compile_time:.0f}s, "
                f"{running_services} running services, RAM usage {ram_usage:.0f}%."
            ),
            actions=actions,
            optimization_metric=metric,
            expected_improvement=expected,
            confidence=min(0.88, self.confidence + 0.15),
            auto_apply=compile_time > 60 or ram_usage > 90,
        )
