"""
modhost CLI - boot a module host.

Usage:
    modhost                          Boot from config/modhost.toml (if any)
    modhost -c host.toml             Boot from a configuration file
    modhost -e <locator>             Also load an extension (repeatable)
    modhost -m <locator>             Also install a module (repeatable)
    modhost --init-config <path>     Write a default configuration file
"""

import argparse
import sys

from modhost import __version__
from modhost.application import ApplicationError
from modhost.config import ConfigError, load_config, write_default_config
from modhost.extension import DescriptorError, ExtensionError
from modhost.host import Host
from modhost.log import configure_logging
from modhost.module import ModuleError
from modhost.resolver import ResolutionError

# Errors reported without a traceback
HOST_ERRORS = (
    ApplicationError,
    ConfigError,
    DescriptorError,
    ExtensionError,
    ModuleError,
    ResolutionError,
)


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser."""
    parser = argparse.ArgumentParser(
        prog="modhost",
        description="modhost - load extensions and modules into a running host",
    )
    parser.add_argument("-c", "--config", help="Configuration file")
    parser.add_argument(
        "-e",
        "--extension",
        action="append",
        default=[],
        metavar="LOCATOR",
        help="Load an extension (repeatable)",
    )
    parser.add_argument(
        "-m",
        "--module",
        action="append",
        default=[],
        metavar="LOCATOR",
        help="Install a module (repeatable)",
    )
    parser.add_argument(
        "--init-config", metavar="PATH", help="Write a default configuration file and exit"
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")
    parser.add_argument("--version", action="version", version=f"modhost {__version__}")
    return parser


def print_summary(host: Host) -> None:
    """Print installed extensions and modules."""
    installed = host.extensions.installed()
    print(f"Extensions ({len(installed)}):")
    for locator, extension in installed.items():
        print(f"  {extension}  {locator}")

    handles = host.runtime.handles()
    print(f"Modules ({len(handles)}):")
    for handle in handles:
        print(f"  [{handle.id}] {handle.name} ({handle.kind}, {handle.state.value})  {handle.location}")


def main(argv: list[str] | None = None) -> int:
    """Main entry point for modhost CLI."""
    parser = create_parser()
    args = parser.parse_args(argv)

    try:
        if args.init_config:
            path = write_default_config(args.init_config)
            print(f"Wrote {path}")
            return 0

        config = load_config(args.config)
        configure_logging("DEBUG" if args.verbose else config.log_level, config.log_format)
        config.modules.extend(args.module)
        config.extensions.extend(args.extension)

        with Host(config) as host:
            host.init()
            host.start()
            print_summary(host)
        return 0

    except HOST_ERRORS as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        return 130
    except Exception as e:
        print(f"Unexpected error: {e}", file=sys.stderr)
        if args.verbose:
            import traceback

            traceback.print_exc()
        return 1


if __name__ == "__main__":
    sys.exit(main())
