"""
Module installation.

This package handles:
- The module runtime contract and its importlib implementation
- Module packaging formats (handlers)
- Dispatching artifacts to handlers
"""

from modhost.module.dispatcher import ModuleDispatcher, UnhandledModuleTypeError
from modhost.module.handlers import (
    ModuleHandler,
    PluginModuleHandler,
    SourceModuleHandler,
    WheelModuleHandler,
    default_handlers,
)
from modhost.module.runtime import (
    ImportRuntime,
    InstallError,
    InstallRequest,
    ModuleError,
    ModuleHandle,
    ModuleRuntime,
    ModuleState,
    UninstallError,
)

__all__ = [
    "ImportRuntime",
    "InstallError",
    "InstallRequest",
    "ModuleDispatcher",
    "ModuleError",
    "ModuleHandle",
    "ModuleHandler",
    "ModuleRuntime",
    "ModuleState",
    "PluginModuleHandler",
    "SourceModuleHandler",
    "UnhandledModuleTypeError",
    "UninstallError",
    "WheelModuleHandler",
    "default_handlers",
]
