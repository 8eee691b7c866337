"""Tick orchestration."""

from .engine import StepMode, StepReport, run_tick, step

__all__ = ["StepMode", "StepReport", "run_tick", "step"]
