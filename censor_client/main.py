"""
Command-line entry point for the AIOCENSOR console client.

Provides login, logout, status, refresh and navigation commands on top of
the session client so the session lifecycle can be driven from a shell.
"""

import sys
import json
import asyncio
import argparse
import getpass
import logging

from censor_shared.exceptions import ConsoleClientError
from censor_shared.logging_config import setup_logging, LogLevel, LogFormat
from censor_client.app import SessionClient, build_session_client
from censor_client.config import ClientConfiguration

logger = logging.getLogger(__name__)


def parse_arguments(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="AIOCENSOR console session client",
        epilog="""
Examples:
  %(prog)s --login                 # Prompt for the password and sign in
  %(prog)s --status --json         # Show session state as JSON
  %(prog)s --refresh               # Renew the token pair now
  %(prog)s --navigate /blacklist   # Resolve a console route through the guard
  %(prog)s --get /api/audit        # Authenticated GET, printed as JSON
  %(prog)s --logout                # Clear the stored session
        """,
        formatter_class=argparse.RawDescriptionHelpFormatter
    )

    operation_group = parser.add_mutually_exclusive_group(required=True)
    operation_group.add_argument("--login", action="store_true",
                                 help="Sign in with the console password")
    operation_group.add_argument("--logout", action="store_true",
                                 help="Clear the stored session")
    operation_group.add_argument("--status", action="store_true",
                                 help="Show current session state")
    operation_group.add_argument("--refresh", action="store_true",
                                 help="Exchange the refresh token for a new pair")
    operation_group.add_argument("--navigate", type=str, metavar="PATH",
                                 help="Navigate to a console route")
    operation_group.add_argument("--get", type=str, metavar="PATH",
                                 help="Perform an authenticated GET request")

    parser.add_argument("--password", type=str,
                        help="Password for --login (prompted when omitted)")

    config_group = parser.add_argument_group('Configuration')
    config_group.add_argument("--config", type=str, metavar="FILE",
                              help="Path to configuration file")
    config_group.add_argument("--server-url", type=str, metavar="URL",
                              help="Override server URL")
    config_group.add_argument("--storage-dir", type=str, metavar="DIR",
                              help="Override session storage directory")

    output_group = parser.add_argument_group('Output')
    output_group.add_argument("--json", action="store_true",
                              help="Output in JSON format")
    output_group.add_argument("--verbose", "-v", action="store_true",
                              help="Enable verbose output")
    output_group.add_argument("--quiet", "-q", action="store_true",
                              help="Suppress non-error output")

    args = parser.parse_args(argv)

    if args.quiet and args.verbose:
        parser.error("--quiet and --verbose are mutually exclusive")
    if args.password and not args.login:
        parser.error("--password can only be used with --login")

    return args


def configure_logging(args, config: ClientConfiguration) -> None:
    """Configure logging from configuration and command line flags."""
    if args.verbose:
        level = LogLevel.DEBUG
    elif args.quiet or args.json:
        level = LogLevel.ERROR
    else:
        try:
            level = LogLevel(config.get_log_level())
        except ValueError:
            level = LogLevel.INFO

    try:
        log_format = LogFormat(config.get_log_format())
    except ValueError:
        log_format = LogFormat.STANDARD

    setup_logging(
        log_level=level,
        log_format=log_format,
        log_file=config.get_log_file(),
        audit_file=config.get_audit_file()
    )


def emit(args, payload: dict, text: str, success: bool = True) -> None:
    """Print a result as JSON or text."""
    if args.json:
        print(json.dumps(payload, default=str))
    elif not args.quiet or not success:
        print(text, file=sys.stdout if success else sys.stderr)


async def run_operation(args, client: SessionClient) -> int:
    """
    Run the requested operation.

    Returns:
        Exit code (0 for success, 1 for failure)
    """
    manager = client.session_manager

    if args.login:
        password = args.password if args.password is not None else getpass.getpass("Password: ")
        result = await manager.login(password)
        emit(args, result.to_dict(), "Logged in" if result else f"Login failed: {result.message}", result.success)
        return 0 if result else 1

    if args.logout:
        result = manager.logout()
        emit(args, result.to_dict(), "Logged out")
        return 0

    if args.status:
        is_authenticated = manager.check_auth()
        expires_at = manager.access_token_expires_at()
        payload = {
            'authenticated': is_authenticated,
            'state': manager.state.value,
            'expires_at': expires_at.isoformat() if expires_at else None,
        }
        text = f"State: {manager.state.value}"
        if expires_at:
            text += f" (access token expires {expires_at.isoformat()})"
        emit(args, payload, text)
        return 0

    if args.refresh:
        manager.check_auth()
        result = await manager.refresh()
        emit(args, result.to_dict(), "Token refreshed" if result else f"Refresh failed: {result.message}", result.success)
        return 0 if result else 1

    if args.navigate:
        location = client.router.navigate(args.navigate)
        if location is None:
            emit(args, {'success': False}, f"Navigation to {args.navigate} failed", success=False)
            return 1
        emit(
            args,
            {'success': True, 'path': location.full_path, 'name': location.name, 'title': client.router.title},
            f"{location.full_path} [{client.router.title}]"
        )
        return 0

    if args.get:
        manager.check_auth()
        try:
            body = await client.api_client.get(args.get)
        except ConsoleClientError as e:
            emit(args, e.to_dict(), f"Request failed: {e.user_message}", success=False)
            return 1
        emit(args, {'success': True, 'body': body}, json.dumps(body, indent=2, default=str))
        return 0

    return 1


async def _run(args, config: ClientConfiguration) -> int:
    async with build_session_client(config) as client:
        return await run_operation(args, client)


def main(argv=None) -> int:
    """Main entry point for the client."""
    args = parse_arguments(argv)

    try:
        config = ClientConfiguration(args.config)
        if args.server_url:
            config.set_override('server_url', args.server_url)
        if args.storage_dir:
            config.set_override('storage_dir', args.storage_dir)

        configure_logging(args, config)
        return asyncio.run(_run(args, config))

    except KeyboardInterrupt:
        print("\nInterrupted by user", file=sys.stderr)
        return 130
    except ConsoleClientError as e:
        print(f"Error: {e.user_message}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
