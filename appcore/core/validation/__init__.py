from .validator import PermissionValidator

__all__ = ["PermissionValidator"]
