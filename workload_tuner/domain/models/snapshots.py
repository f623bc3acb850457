from typing import Dict, Any, List, Optional
from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime


class SystemSnapshot(BaseModel):
    """Point-in-time hardware and performance reading"""
    model_config = ConfigDict(frozen=True)

    timestamp: datetime = Field(default_factory=datetime.utcnow)

    # Utilization, percent
    cpu_usage: float = 0.0
    gpu_usage: float = 0.0
    ram_usage: float = 0.0
    ram_available_gb: float = 0.0
    disk_usage: float = 0.0
    network_usage: float = 0.0

    # Thermal, celsius
    cpu_temp: float = 0.0
    gpu_temp: float = 0.0

    # Hardware
    cpu_model: Optional[str] = None
    gpu_model: Optional[str] = None
    cpu_cores: Optional[int] = None
    gpu_vram_gb: Optional[float] = None
    total_ram_gb: Optional[float] = None
    storage_type: Optional[str] = Field(None, description="SSD, NVMe or HDD")

    # Gaming
    current_fps: Optional[float] = None
    frame_time_ms: Optional[float] = None
    input_latency_ms: Optional[float] = None

    current_profile: str = "Balanced"
    additional_metrics: Dict[str, Any] = Field(
        default_factory=dict,
        description="Workload readings such as bitrate or compile_time"
    )


class ActivitySnapshot(BaseModel):
    """Point-in-time process and window reading"""
    model_config = ConfigDict(frozen=True)

    timestamp: datetime = Field(default_factory=datetime.utcnow)
    running_processes: List[str] = Field(default_factory=list)
    active_window: Optional[str] = None
    active_process: Optional[str] = None
    category: str = Field(default="Unknown", description="Gaming, Development, Rendering, Browsing, ...")
    is_user_active: bool = False

    def process_matches(self, keyword: str) -> bool:
        """Case-insensitive substring match against running processes and the active process"""
        needle = keyword.lower()
        names = list(self.running_processes)
        if self.active_process:
            names.append(self.active_process)
        return any(needle in name.lower() for name in names)

    def first_matching_process(self, keywords: List[str]) -> Optional[str]:
        """Return the first process name containing any keyword"""
        for name in self.running_processes:
            lowered = name.lower()
            if any(keyword.lower() in lowered for keyword in keywords):
                return name
        return None
