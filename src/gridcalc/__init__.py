"""gridcalc -- spreadsheet formula engine with incremental recalculation."""

__version__ = "0.1.0"

from gridcalc.config import DEFAULT_CONFIG, EngineConfig, load_engine_config  # noqa: E402
from gridcalc.dependency_graph import DependencyGraph  # noqa: E402
from gridcalc.engine import CellResult, FormulaEngine  # noqa: E402
from gridcalc.store import CellStore, SheetStore  # noqa: E402

__all__ = [
    "DEFAULT_CONFIG",
    "CellResult",
    "CellStore",
    "DependencyGraph",
    "EngineConfig",
    "FormulaEngine",
    "SheetStore",
    "__version__",
    "load_engine_config",
]
