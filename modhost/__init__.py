"""
modhost - a modular runtime host.

Loads extensions (bundles of modules and nested extensions) and modules
from paths, URLs and repositories into a running Python process.
"""

__version__ = "0.1.0"

from modhost.application import ApplicationError, ApplicationManager  # noqa: E402
from modhost.config import ConfigError, HostConfig, load_config  # noqa: E402
from modhost.host import Host  # noqa: E402

__all__ = [
    "ApplicationError",
    "ApplicationManager",
    "ConfigError",
    "Host",
    "HostConfig",
    "__version__",
    "load_config",
]
