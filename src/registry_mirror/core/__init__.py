"""Core modules for registry-mirror: configuration and the image copy capability."""

from .config import ServiceConfig
from .copier import Copier, CopyError, CraneCopier, ThreadedCopier

__all__ = ["ServiceConfig", "Copier", "CopyError", "CraneCopier", "ThreadedCopier"]
