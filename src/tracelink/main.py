#!/usr/bin/env python3
"""
TraceLink - Main Entry Point

Headless host: connects to the simulation backend and logs every decoded
transaction and control message.
"""

import sys
import signal
import argparse
import logging

from PyQt6.QtCore import QCoreApplication, QTimer

from . import __version__
from .config import APPLICATION, ORGANIZATION, load_config, save_config
from .controllers.trace_controller import TraceController
from .utils.error_handler import get_error_handler
from .utils.logger import setup_logger


def parse_args(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="TraceLink - bridge between a virtual prototype backend and a trace viewer",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s                          # Connect to the last used backend
  %(prog)s -c 192.168.1.100:8080    # Connect to a remote backend
  %(prog)s -c localhost:8080 --status
"""
    )

    parser.add_argument(
        "-c", "--connect",
        metavar="HOST:PORT",
        help="Backend address (default: last used, or 127.0.0.1:8080)"
    )

    parser.add_argument(
        "--status",
        action="store_true",
        help="Request the backend status once connected"
    )

    parser.add_argument(
        "--reset-interval",
        type=float,
        default=0.0,
        metavar="SECONDS",
        help="Request a reset periodically while disconnected (default: off)"
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging"
    )

    parser.add_argument(
        "--debug-socket",
        action="store_true",
        help="Also log websockets and asyncio internals"
    )

    return parser.parse_args(argv)


def main(argv=None):
    """Main application entry point."""
    args = parse_args(argv)

    config = load_config()
    if args.connect:
        config.address = args.connect

    log_level = logging.DEBUG if args.verbose else getattr(logging, config.log_level.upper(), logging.INFO)
    setup_logger(log_level, debug_socket=args.debug_socket)
    logger = logging.getLogger(__name__)

    problems = config.validate()
    if problems:
        for problem in problems:
            logger.error(problem)
        return 2

    logger.info("Starting TraceLink...")
    logger.info(f"  Backend: {config.address}{config.endpoint_path}")

    app = QCoreApplication(sys.argv if argv is None else [sys.argv[0], *argv])
    app.setApplicationName(APPLICATION)
    app.setOrganizationName(ORGANIZATION)
    app.setApplicationVersion(__version__)

    error_handler = get_error_handler()
    error_handler.install_global_handler()

    controller = TraceController(config)

    def log_transactions(transactions):
        for transaction in transactions:
            logger.info(str(transaction))

    controller.transactions_received.connect(log_transactions)
    controller.working_dirs_received.connect(
        lambda dirs, vps: logger.info(f"Working dirs: {dirs}, virtual prototypes: {vps}")
    )
    controller.layout_received.connect(
        lambda layout: logger.info(f"Modules: {', '.join(layout.module_names)}")
    )
    controller.status_received.connect(
        lambda vp, gdb: logger.info(f"Status: vp={vp:+d} gdb={gdb:+d}")
    )
    controller.start_received.connect(lambda value: logger.info(f"Start: {value!r}"))
    controller.options_received.connect(lambda value: logger.info(f"Options: {value!r}"))
    controller.socket_closed.connect(lambda: logger.info("Waiting for reset..."))

    def on_opened(address):
        save_config(config)
        if args.status:
            controller.request_status()

    controller.socket_opened.connect(on_opened)

    # Explicit resets re-open the last address while the backend is down
    reset_timer = QTimer()
    reset_timer.setInterval(int(args.reset_interval * 1000))
    reset_timer.timeout.connect(controller.reset)

    app.aboutToQuit.connect(reset_timer.stop)
    app.aboutToQuit.connect(controller.shutdown)
    signal.signal(signal.SIGINT, lambda *_: app.quit())

    # Let Python handle SIGINT between Qt events
    idle_timer = QTimer()
    idle_timer.timeout.connect(lambda: None)
    idle_timer.start(200)

    controller.start()
    controller.open(config.address)
    if args.reset_interval > 0:
        reset_timer.start()

    exit_code = app.exec()
    error_handler.uninstall_global_handler()
    logger.info(f"TraceLink stopped ({error_handler.summary()})")
    return exit_code


if __name__ == "__main__":
    sys.exit(main())
