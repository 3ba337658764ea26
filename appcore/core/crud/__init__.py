from .model import CrudModel

__all__ = ["CrudModel"]
