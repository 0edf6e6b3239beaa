"""Editor package: document models, surfaces, selection tracking and pagination."""

from importlib import import_module
from typing import Any

from . import document_model, pagination, selection_tracker, surface

__all__ = ["document_model", "pagination", "selection_tracker", "surface"]


def __getattr__(name: str) -> Any:
	if name == "qt_surface":
		module = import_module(f"{__name__}.{name}")
		globals()[name] = module
		return module
	raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
