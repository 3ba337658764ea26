from __future__ import annotations

import hashlib
import importlib.util
import logging
import sys
from pathlib import Path
from types import ModuleType
from typing import Any, List

from appcore.core.extensions.registry import ExtensionRegistry

log = logging.getLogger("appcore.extensions")

_RUNTIME_PACKAGE = "appcore.plugins._runtime"


def _load_module(file_path: Path) -> ModuleType:
    module_qualname = f"{_RUNTIME_PACKAGE}.{file_path.stem}"
    spec = importlib.util.spec_from_file_location(module_qualname, str(file_path))
    if spec is None or spec.loader is None:
        raise ImportError(f"Cannot load spec for {module_qualname} from {file_path}")

    module = importlib.util.module_from_spec(spec)
    # register before exec so dataclasses/pickling inside the module resolve
    sys.modules[module_qualname] = module
    spec.loader.exec_module(module)
    return module


def _extension_symbol(module: ModuleType, file_path: Path) -> Any:
    ext = getattr(module, "EXTENSION", None)
    if ext is None:
        raise AttributeError(f"{file_path.name} must define EXTENSION")
    if not getattr(ext, "name", None):
        raise AttributeError(f"{file_path.name}: EXTENSION must have 'name'")
    if not callable(getattr(ext, "register", None)):
        raise AttributeError(f"{file_path.name}: EXTENSION must implement register(registry)")
    return ext


def fingerprint(directory: str | Path) -> str:
    h = hashlib.sha256()
    for py in sorted(Path(directory).glob("*.py")):
        if py.name.startswith("_"):
            continue
        h.update(py.name.encode("utf-8"))
        h.update(b"\0")
        h.update(py.read_bytes())
        h.update(b"\0")
    return h.hexdigest()[:16]


def load_extension_modules(registry: ExtensionRegistry, directory: str | Path) -> List[str]:
    """
    Import every public *.py file in `directory` and let its EXTENSION
    register callbacks. Returns loaded extension names in load order.
    """
    loaded: List[str] = []
    root = Path(directory)
    if not root.is_dir():
        log.warning("extensions dir missing path=%s", root)
        return loaded

    for py in sorted(root.glob("*.py")):
        if py.name.startswith("_"):
            continue
        ext = _extension_symbol(_load_module(py), py)
        if ext.name in registry.modules:
            raise ValueError(f"Duplicate extension name: {ext.name} ({py})")
        ext.register(registry)
        registry.modules[ext.name] = str(py)
        loaded.append(ext.name)
        log.info("extension module loaded name=%s file=%s", ext.name, py.name)

    return loaded
