"""Workload-aware agent orchestration for PC tuning"""

__version__ = "0.1.0"
