"""Work-order loading and runtime settings."""
from .work_order import WorkOrder, WorkOrderError, load_work_order, parse_work_order
from .settings import Settings, SettingsError, load_settings

__all__ = [
    "WorkOrder",
    "WorkOrderError",
    "load_work_order",
    "parse_work_order",
    "Settings",
    "SettingsError",
    "load_settings",
]
