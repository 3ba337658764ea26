from .cache import PlatformStaffCacheManager
from .datatable import PlatformStaffDataTableModel
from .model import PlatformStaffModel
from .validator import PlatformStaffValidator

__all__ = [
    "PlatformStaffCacheManager",
    "PlatformStaffDataTableModel",
    "PlatformStaffModel",
    "PlatformStaffValidator",
]
