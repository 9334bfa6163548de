import argparse
import logging
import sys
import threading
from typing import List, Optional

from config import Config
from exceptions import (
    AuthenticationFailure,
    ClientFailure,
    ConnectionFailure,
    Exhausted,
    InvalidResponse,
    ServerFailure,
    UnknownStatusCode,
    WallboxError,
)
from logging_utils import setup_logging
from notification_service import NotificationService
from status import convert_seconds, get_status_name, lookup_status
from status_monitor import StatusMonitor, monitor_chargers
from token_manager import Credentials, WallboxTokenManager
from transport import RetryPolicy, send
from wallbox_client import WallboxClient

__all__ = [
    "AuthenticationFailure",
    "ClientFailure",
    "Config",
    "ConnectionFailure",
    "Credentials",
    "Exhausted",
    "InvalidResponse",
    "NotificationService",
    "RetryPolicy",
    "ServerFailure",
    "StatusMonitor",
    "UnknownStatusCode",
    "WallboxClient",
    "WallboxError",
    "WallboxTokenManager",
    "build_client",
    "convert_seconds",
    "get_status_name",
    "lookup_status",
    "main",
    "monitor_chargers",
    "send",
]


def build_client(config: Config) -> WallboxClient:
    """Wire a client and its token manager from the configuration."""
    if config.basic_token:
        credentials = Credentials.from_token(config.basic_token)
    else:
        credentials = Credentials(username=config.username, password=config.password)
    policy = RetryPolicy(max_retries=config.max_retries, base_delay=config.retry_base_delay)
    token_manager = WallboxTokenManager(
        credentials,
        policy=policy,
        timeout=config.request_timeout,
        proactive_refresh=config.proactive_refresh,
    )
    return WallboxClient(token_manager, policy=policy, timeout=config.request_timeout)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Monitor and control Wallbox chargers")
    sub = parser.add_subparsers(dest="cmd")

    sub.add_parser("monitor", help="Monitor every configured charger until interrupted")

    p_status = sub.add_parser("status", help="Print the status of a charger")
    p_status.add_argument("charger_id")

    p_lock = sub.add_parser("lock", help="Lock a charger")
    p_lock.add_argument("charger_id")

    p_unlock = sub.add_parser("unlock", help="Unlock a charger")
    p_unlock.add_argument("charger_id")

    p_stats = sub.add_parser("stats", help="Print charging sessions between two timestamps")
    p_stats.add_argument("charger_id")
    p_stats.add_argument("start", type=int, help="Window start, epoch seconds")
    p_stats.add_argument("end", type=int, help="Window end, epoch seconds")
    p_stats.add_argument("--limit", type=int, default=None)

    args = parser.parse_args(argv)
    if args.cmd is None:
        args.cmd = "monitor"
    return args


def main(argv: Optional[List[str]] = None) -> None:
    args = parse_args(argv)
    try:
        config = Config.from_env()
    except ValueError as e:
        logging.error(f"Configuration error: {e}")
        sys.exit(1)

    if args.cmd == "monitor" and not config.charger_ids:
        logging.error("Configuration error: WALLBOX_CHARGER_IDS must be set to monitor chargers")
        sys.exit(1)

    setup_logging(config.log_file, config.log_level)
    client = build_client(config)

    try:
        if args.cmd == "monitor":
            notification_service = NotificationService(config)
            monitor_chargers(
                client,
                notification_service,
                config.charger_ids,
                poll_interval=config.poll_interval,
                stop_event=threading.Event(),
            )
        elif args.cmd == "status":
            print(client.get_status_name(args.charger_id))
        elif args.cmd == "lock":
            client.lock_charger(args.charger_id)
        elif args.cmd == "unlock":
            client.unlock_charger(args.charger_id)
        elif args.cmd == "stats":
            print(client.fetch_usage_window(args.charger_id, args.start, args.end, args.limit))
    except WallboxError as e:
        logging.error(f"Application error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
