from __future__ import annotations
from typing import Any

# 1) Версия пакета
try:
    from importlib.metadata import version as _pkg_version  # Py>=3.8
except ImportError:
    _pkg_version = None  # type: ignore

try:
    __version__ = _pkg_version("mesh-accel") if _pkg_version else "0.1.0"
except Exception:
    # в editable/develop-режиме пакет может быть не «установлен»
    __version__ = "0.1.0"

__all__ = ["__version__", "TreeBuilder", "BuildConfig", "build_tree", "refit_tree"]

# 2) Ленивый экспорт для публичного API (избегаем ранних импортов)
def __getattr__(name: str) -> Any:
    if name in ("TreeBuilder", "build_tree", "refit_tree"):
        from .core import builder  # локальный импорт, не создаёт цикл
        return getattr(builder, name)
    if name == "BuildConfig":
        from .config import BuildConfig
        return BuildConfig
    raise AttributeError(name)
