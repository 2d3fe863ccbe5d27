"""Simulation module: the tick and the timer that drives it.

Example:
    from eve_door.simulation import IntervalTimer, SimulationEngine

    engine = SimulationEngine(door, history)
    timer = IntervalTimer(60.1, engine.tick)
    timer.start()
"""

from eve_door.simulation.engine import (
    BATTERY_STEP,
    BATTERY_WRAP_LIMIT,
    SensorState,
    SimulationEngine,
    charge_level_for,
    next_battery_percent,
)
from eve_door.simulation.timer import IntervalTimer, SleepFunc

__all__ = [
    "BATTERY_STEP",
    "BATTERY_WRAP_LIMIT",
    "IntervalTimer",
    "SensorState",
    "SimulationEngine",
    "SleepFunc",
    "charge_level_for",
    "next_battery_percent",
]
