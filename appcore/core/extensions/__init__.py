from .loader import fingerprint, load_extension_modules
from .registry import DEFAULT_PRIORITY, ExtensionContribution, ExtensionRegistry

__all__ = [
    "DEFAULT_PRIORITY",
    "ExtensionContribution",
    "ExtensionRegistry",
    "fingerprint",
    "load_extension_modules",
]
