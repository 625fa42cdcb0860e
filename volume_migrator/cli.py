"""Command line entry point: ``volume-migrator``."""

import argparse
import asyncio
import sys
from typing import Any

from . import __version__
from .core.config_loader import MigrationConfig, build_job, load_config, validate_config
from .core.exceptions import ConfigurationError, VolumeMigratorError
from .core.logging_config import setup_logging
from .core.migration.orchestrator import MigrationOrchestrator
from .core.security.host_trust import HostTrustStore

EXAMPLES = """\
examples:
  # Migrate all volumes from a container
  volume-migrator mycontainer --remote user@192.168.1.100

  # Interactive mode - select which volumes to migrate
  volume-migrator mycontainer --remote user@host --interactive

  # Multiple containers with custom SSH key
  volume-migrator web-app db-server --remote user@host --ssh-key ~/.ssh/deploy_key

  # Verbose mode with dry-run
  volume-migrator app --remote user@host --verbose --dry-run
"""


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments.

    Unset options default to ``None`` so they do not override values coming
    from the environment or a config file.
    """
    parser = argparse.ArgumentParser(
        prog="volume-migrator",
        description="Migrate Docker volumes from local containers to a remote machine",
        epilog=EXAMPLES,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("containers", nargs="*", help="Containers whose volumes to migrate")
    parser.add_argument("-r", "--remote", dest="remote_host", help="Remote host as user@host[:port]")
    parser.add_argument(
        "-i",
        "--interactive",
        action="store_true",
        default=None,
        help="Display volumes and select which to migrate",
    )
    parser.add_argument("--ssh-key", dest="ssh_key_path", help="Path to SSH private key")
    parser.add_argument("--ssh-port", help="SSH port (default: 22)")
    parser.add_argument("--temp-dir", help="Local staging directory")
    parser.add_argument("--remote-temp-dir", help="Remote staging directory")
    parser.add_argument("-v", "--verbose", action="store_true", default=None, help="Verbose output")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        default=None,
        help="Show what would be done without doing it",
    )
    parser.add_argument(
        "--validate-only",
        action="store_true",
        default=None,
        help="Validate configuration without running migration",
    )
    parser.add_argument(
        "--force", action="store_true", default=None, help="Skip disk space validation checks"
    )
    parser.add_argument(
        "--no-cleanup",
        action="store_true",
        default=None,
        help="Keep staging files for debugging",
    )
    parser.add_argument(
        "-p",
        "--progress",
        dest="show_progress",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Report transfer progress (default: on)",
    )
    parser.add_argument(
        "--strict-host-key-checking",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Verify SSH host keys against known_hosts (default: on)",
    )
    parser.add_argument(
        "--accept-host-key",
        action="store_true",
        default=None,
        help="Automatically add unknown host keys (requires --no-strict-host-key-checking)",
    )
    parser.add_argument("--known-hosts-file", help="Path to known_hosts file")
    parser.add_argument("--config", help="YAML configuration file")
    parser.add_argument("--log-file", help="Also write JSON logs to this file")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    return parser.parse_args(argv)


def _overrides(args: argparse.Namespace) -> dict[str, Any]:
    overrides = {key: value for key, value in vars(args).items() if key != "config"}
    if not overrides["containers"]:
        overrides["containers"] = None
    return overrides


def _print_error(message: str, error: BaseException | None = None) -> None:
    print(f"Error: {message}", file=sys.stderr)
    for note in getattr(error, "__notes__", ()):
        print(f"  {note}", file=sys.stderr)


def _print_config_summary(config: MigrationConfig) -> None:
    print("Configuration is valid")
    print(f"  Containers: {', '.join(config.containers)}")
    print(f"  Remote Host: {config.remote_host}")
    print(f"  SSH Port: {config.ssh_port}")
    if config.ssh_key_path:
        print(f"  SSH Key: {config.ssh_key_path}")
    if config.temp_dir:
        print(f"  Temp Directory: {config.temp_dir}")
    if config.remote_temp_dir:
        print(f"  Remote Temp Directory: {config.remote_temp_dir}")
    print(f"  Strict Host Key Checking: {config.strict_host_key_checking}")


def run(argv: list[str] | None = None) -> int:
    """Run the CLI and return the process exit code."""
    args = parse_args(argv)

    try:
        config = load_config(args.config, **_overrides(args))
        validate_config(config)
    except ConfigurationError as e:
        _print_error(f"configuration validation failed: {e}", e)
        return 1

    if config.validate_only:
        _print_config_summary(config)
        return 0

    logger = setup_logging(verbose=config.verbose, log_file=config.log_file)

    try:
        job = build_job(config)
        trust_store = HostTrustStore(config.known_hosts_file, config.host_key_mode, logger=logger)
        orchestrator = MigrationOrchestrator(job, trust_store=trust_store, logger=logger)
        result = asyncio.run(orchestrator.run())
    except KeyboardInterrupt:
        _print_error("migration interrupted")
        return 1
    except VolumeMigratorError as e:
        _print_error(f"migration failed: {e}", e)
        return 1

    print(result.message)
    for warning in result.warnings:
        print(f"Warning: {warning}")
    for error in result.cleanup_errors:
        print(f"Warning: cleanup failed: {error}")
    return 0


def main() -> None:
    """Main entry point."""
    sys.exit(run())


if __name__ == "__main__":
    main()
