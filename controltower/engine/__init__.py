"""
Control Tower engine components.

Pure components (window evaluator, snapshot builder, threshold classifier,
alert generator, export cadence gate) plus the RCA lifecycle manager and the
ControlTowerEngine facade that wires them to storage.
"""

from .alert_generator import AlertGenerator
from .export_cadence import get_export_cadence_window
from .rca_lifecycle import RcaLifecycleManager
from .service import ControlTowerEngine
from .snapshot_builder import SnapshotBuilder
from .thresholds import classify_priority, classify_snapshot
from .window import FactWindowEvaluator

__all__ = [
    "AlertGenerator",
    "ControlTowerEngine",
    "FactWindowEvaluator",
    "RcaLifecycleManager",
    "SnapshotBuilder",
    "classify_priority",
    "classify_snapshot",
    "get_export_cadence_window",
]
