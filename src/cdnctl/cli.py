"""
Command-line interface for cdnctl.

Provides commands for managing credential profiles and calling the CDN
management API with signed requests.

Uses Python's argparse module (no external CLI libraries).
"""

from __future__ import annotations

import argparse
import getpass
import json
import logging
import sys
from pathlib import Path
from typing import Any, NoReturn

from cdnctl import __version__
from cdnctl.api.client import (
    SERVICE_ID_PATH,
    ApiClient,
    ApiClientError,
    call_api,
)
from cdnctl.config.profiles import (
    ProfileError,
    ProfileSet,
    ProfileStore,
    add_profile,
    remove_profile,
    show_profiles,
)
from cdnctl.config.settings import ConfigurationError, Settings, load_config

# Set up logging
logger = logging.getLogger(__name__)

# Global verbosity settings (set during main() based on args)
_quiet_mode = False

HTTP_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE"]


def set_output_mode(quiet: bool = False) -> None:
    """
    Set the output mode for the CLI.

    Args:
        quiet: If True, suppress non-essential output.
    """
    global _quiet_mode
    _quiet_mode = quiet


def output(message: str = "", force: bool = False) -> None:
    """
    Print a message to stdout, respecting quiet mode.

    Args:
        message: The message to print.
        force: If True, print even in quiet mode (for essential output like JSON).
    """
    if force or not _quiet_mode:
        print(message)


def output_error(message: str) -> None:
    """
    Print an error message (always shown, even in quiet mode).

    Args:
        message: The error message to print.
    """
    print(message, file=sys.stderr)


def mask_secret(value: str) -> str:
    """Mask all but the last four characters of a secret."""
    if len(value) <= 4:
        return "*" * len(value)
    return "*" * (len(value) - 4) + value[-4:]


def format_response(data: bytes) -> str:
    """Pretty-print a JSON response body, or return it as text."""
    text = data.decode("utf-8", errors="replace")
    try:
        parsed = json.loads(text)
    except ValueError:
        return text
    return json.dumps(parsed, indent=2, ensure_ascii=False)


def create_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser for cdnctl CLI."""
    parser = argparse.ArgumentParser(
        prog="cdnctl",
        description="Command-line client for the SwiftFederation CDN management API",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"cdnctl {__version__}",
    )

    parser.add_argument(
        "--settings",
        metavar="PATH",
        help="Override settings file location (default: ~/.config/cdnctl/settings.yaml)",
    )

    parser.add_argument(
        "--profiles-file",
        metavar="PATH",
        help="Override profiles file location (default: ~/.config/cdnctl/config.yaml)",
    )

    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase output verbosity (can be repeated)",
    )

    parser.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Suppress non-essential output",
    )

    subparsers = parser.add_subparsers(
        title="commands",
        dest="command",
        metavar="<command>",
    )

    # config command
    config_parser = subparsers.add_parser(
        "config",
        help="Manage access key profiles",
        description="Add, remove, show and select CDN credential profiles.",
    )
    config_subparsers = config_parser.add_subparsers(
        title="config commands",
        dest="config_command",
        metavar="<config-command>",
    )
    config_parser.set_defaults(func=lambda args: _print_help(config_parser))

    add_parser = config_subparsers.add_parser(
        "add",
        help="Add a new profile",
        description="Add a new CDN profile. Missing values are prompted for.",
    )
    add_parser.add_argument("--name", help="Profile name")
    add_parser.add_argument("--access-key", help="Access key")
    add_parser.add_argument(
        "--secret",
        help="Access key secret (prompted without echo if omitted)",
    )
    default_group = add_parser.add_mutually_exclusive_group()
    default_group.add_argument(
        "--default",
        dest="make_default",
        action="store_true",
        default=None,
        help="Set as default profile",
    )
    default_group.add_argument(
        "--no-default",
        dest="make_default",
        action="store_false",
        default=None,
        help="Do not set as default profile",
    )
    add_parser.set_defaults(func=cmd_config_add)

    remove_parser = config_subparsers.add_parser(
        "remove",
        help="Remove a profile",
        description="Remove an existing CDN profile.",
    )
    remove_parser.add_argument("name", nargs="?", help="Profile name")
    remove_parser.set_defaults(func=cmd_config_remove)

    show_parser = config_subparsers.add_parser(
        "show",
        help="Show profiles",
        description="Show all profiles, or a single profile by name.",
    )
    show_parser.add_argument("name", nargs="?", default="", help="Profile name")
    show_parser.add_argument(
        "--format",
        choices=["table", "json"],
        default="table",
        help="Output format (default: table)",
    )
    show_parser.add_argument(
        "--show-secrets",
        action="store_true",
        help="Print access key secrets unmasked",
    )
    show_parser.set_defaults(func=cmd_config_show)

    use_parser = config_subparsers.add_parser(
        "use",
        help="Set the default profile",
        description="Mark an existing profile as the default.",
    )
    use_parser.add_argument("name", help="Profile name")
    use_parser.set_defaults(func=cmd_config_use)

    # wsa command
    wsa_parser = subparsers.add_parser(
        "wsa",
        help="Manage Web Acceleration services",
        description="Query Web Acceleration services.",
    )
    wsa_subparsers = wsa_parser.add_subparsers(
        title="wsa commands",
        dest="wsa_command",
        metavar="<wsa-command>",
    )
    wsa_parser.set_defaults(func=lambda args: _print_help(wsa_parser))

    wsa_get_parser = wsa_subparsers.add_parser(
        "get",
        help="Get Web Acceleration service for a domain",
        description="Look up the Web Acceleration service ID of a domain.",
    )
    wsa_get_parser.add_argument("domain", help="Domain name")
    wsa_get_parser.add_argument(
        "--profile",
        default="",
        help="Profile to sign with (default: default profile)",
    )
    wsa_get_parser.set_defaults(func=cmd_wsa_get)

    # api command
    api_parser = subparsers.add_parser(
        "api",
        help="Make a raw signed API call",
        description="Send a signed request to any API path and print the response.",
    )
    api_parser.add_argument(
        "method",
        type=str.upper,
        choices=HTTP_METHODS,
        help="HTTP method",
    )
    api_parser.add_argument("path", help="URI path, e.g. /v1.1/service_id")
    api_parser.add_argument(
        "--data",
        metavar="JSON",
        help="JSON request body (default: {})",
    )
    api_parser.add_argument(
        "--endpoint",
        choices=["cdn", "base"],
        default="cdn",
        help="API endpoint to call (default: cdn)",
    )
    api_parser.add_argument(
        "--base-url",
        metavar="URL",
        help="Explicit base URL, overrides --endpoint",
    )
    api_parser.add_argument(
        "--profile",
        default="",
        help="Profile to sign with (default: default profile)",
    )
    api_parser.set_defaults(func=cmd_api)

    return parser


def setup_logging(verbose: int, quiet: bool) -> None:
    """Configure logging based on verbosity level."""
    if quiet:
        level = logging.ERROR
    elif verbose == 0:
        level = logging.WARNING
    elif verbose == 1:
        level = logging.INFO
    else:
        level = logging.DEBUG

    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def _print_help(parser: argparse.ArgumentParser) -> int:
    parser.print_help()
    return 0


def load_settings(args: argparse.Namespace) -> Settings:
    """Load settings, honouring --settings and --profiles-file."""
    settings = load_config(Path(args.settings) if args.settings else None)
    if args.profiles_file:
        settings.profiles_file = str(Path(args.profiles_file).expanduser())

    # Flags on the command line win over the configured level
    if not args.quiet and args.verbose == 0:
        logging.getLogger("cdnctl").setLevel(settings.log_level)
    else:
        logging.getLogger("cdnctl").setLevel(logging.NOTSET)

    return settings


def get_profile_store(settings: Settings) -> ProfileStore:
    """Create the profile store configured in settings."""
    return ProfileStore(Path(settings.profiles_file))


def get_api_client(settings: Settings) -> ApiClient:
    """Create an API client bound to the configured profile store."""
    return ApiClient(get_profile_store(settings), timeout=settings.timeout_seconds)


def _prompt(label: str, secret: bool = False) -> str:
    if secret:
        return getpass.getpass(f"{label}: ")
    return input(f"{label}: ").strip()


def cmd_config_add(args: argparse.Namespace) -> int:
    """Add a new profile, prompting for missing values."""
    settings = load_settings(args)
    store = get_profile_store(settings)

    name = args.name or _prompt("Enter Profile Name")
    if not name:
        output_error("Error: Profile name must not be empty.")
        return 1

    access_key = args.access_key or _prompt("Enter Access Key")
    access_key_secret = args.secret or _prompt("Enter Access Key Secret", secret=True)

    make_default = args.make_default
    if make_default is None:
        answer = _prompt("Set as Default Profile? (y/N)").lower()
        make_default = answer in ("y", "yes")

    add_profile(store, name, access_key, access_key_secret, make_default)

    output(f"Profile '{name}' added successfully.")
    if store.list_profiles().default_profile == name:
        output("Set as default profile.")
    return 0


def cmd_config_remove(args: argparse.Namespace) -> int:
    """Remove a profile, prompting for its name if missing."""
    settings = load_settings(args)
    store = get_profile_store(settings)

    name = args.name or _prompt("Enter Profile Name to Remove")
    if not name:
        output_error("Error: Profile name must not be empty.")
        return 1

    previous_default = store.list_profiles().default_profile
    remove_profile(store, name)

    output(f"Profile '{name}' removed successfully.")
    if previous_default == name:
        new_default = store.list_profiles().default_profile
        if new_default:
            output(f"Default profile changed to '{new_default}'.")
        else:
            output("No profiles left; default profile cleared.")
    return 0


def cmd_config_show(args: argparse.Namespace) -> int:
    """Show stored profiles."""
    settings = load_settings(args)
    store = get_profile_store(settings)

    profile_set = show_profiles(store, args.name)

    if args.format == "json":
        data = _profile_set_to_dict(profile_set, args.show_secrets)
        output(json.dumps(data, indent=2), force=True)
        return 0

    if not profile_set.profiles:
        output("No profiles found. Add one with 'cdnctl config add'.")
        return 0

    if args.name:
        profile = profile_set.profiles[0]
        output(f"Profile Name: {profile.name}")
        output(f"Access Key: {profile.access_key}")
        output(f"Access Key Secret: {_secret(profile.access_key_secret, args.show_secrets)}")
        return 0

    default_name = profile_set.effective_default
    output(f"Default Profile: {profile_set.default_profile or '(none)'}")
    output()
    output("Available CDN Profiles:")
    for profile in profile_set.profiles:
        marker = " (default)" if profile.name == default_name else ""
        output(f"Name: {profile.name}{marker}")
        output(f"   AccessKey: {profile.access_key}")
        output(f"   SecretKey: {_secret(profile.access_key_secret, args.show_secrets)}")
        output()
    return 0


def cmd_config_use(args: argparse.Namespace) -> int:
    """Set the default profile."""
    settings = load_settings(args)
    store = get_profile_store(settings)

    store.set_default(args.name)
    output(f"Default profile set to '{args.name}'.")
    return 0


def cmd_wsa_get(args: argparse.Namespace) -> int:
    """Look up the Web Acceleration service for a domain."""
    settings = load_settings(args)
    client = get_api_client(settings)

    body = {"domain": args.domain}
    data = call_api(
        client,
        "POST",
        settings.endpoints.cdn_api,
        SERVICE_ID_PATH,
        body,
        args.profile,
    )

    output("Response:")
    output(format_response(data), force=True)
    return 0


def cmd_api(args: argparse.Namespace) -> int:
    """Make a raw signed API call."""
    settings = load_settings(args)
    client = get_api_client(settings)

    body: Any = None
    if args.data:
        try:
            body = json.loads(args.data)
        except ValueError as e:
            output_error(f"Error: --data is not valid JSON: {e}")
            return 1

    if args.base_url:
        base_url = args.base_url
    elif args.endpoint == "base":
        base_url = settings.endpoints.base_api
    else:
        base_url = settings.endpoints.cdn_api

    data = call_api(client, args.method, base_url, args.path, body, args.profile)

    output(format_response(data), force=True)
    return 0


def _secret(value: str, show: bool) -> str:
    return value if show else mask_secret(value)


def _profile_set_to_dict(profile_set: ProfileSet, show_secrets: bool) -> dict[str, Any]:
    return {
        "default_profile": profile_set.default_profile,
        "profiles": [
            {
                "name": p.name,
                "accessKey": p.access_key,
                "accessKeySecret": _secret(p.access_key_secret, show_secrets),
            }
            for p in profile_set.profiles
        ],
    }


def main(argv: list[str] | None = None) -> NoReturn:
    """Main entry point for cdnctl CLI."""
    parser = create_parser()
    args = parser.parse_args(argv)

    # Set up logging and output mode
    setup_logging(args.verbose, args.quiet)
    set_output_mode(args.quiet)

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    try:
        exit_code = args.func(args)
        sys.exit(exit_code)
    except KeyboardInterrupt:
        output("\nOperation cancelled.")
        sys.exit(130)
    except ConfigurationError as e:
        output_error(f"Configuration error: {e}")
        sys.exit(2)
    except ProfileError as e:
        output_error(f"Profile error: {e}")
        sys.exit(2)
    except ApiClientError as e:
        output_error(f"API call failed: {e}")
        sys.exit(1)
    except Exception as e:
        if args.verbose > 0:
            raise
        output_error(f"Error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
