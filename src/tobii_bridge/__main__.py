import argparse
import logging
import signal
import sys

from pydantic import ValidationError

from . import __version__
from .configs import BridgeSettings
from .core.manager import BridgeStartupError
from .factories import create_server


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="tobii-bridge",
        description="Distributes Tobii gaze and head-pose data over WebSocket and UDP.",
    )
    parser.add_argument(
        "--dummy",
        action="store_true",
        help="Run with a simulated tracking provider instead of a real eye tracker."
    )
    parser.add_argument("--ws-port", type=int, help="WebSocket port (default 8080).")
    parser.add_argument("--udp-port", type=int, help="Legacy OpenTrack UDP port (default 4242).")
    parser.add_argument("--discovery-port", type=int, help="Discovery broadcast port (default 8083).")
    parser.add_argument("--log-level", help="Logging level, e.g. DEBUG.")
    return parser.parse_args(argv)


def load_settings(args: argparse.Namespace) -> BridgeSettings:
    """Environment and `.env` first, command-line flags on top."""
    settings = BridgeSettings()

    overrides: dict = {}
    network = {
        "websocket_port": args.ws_port,
        "udp_port": args.udp_port,
        "discovery_port": args.discovery_port,
    }
    network = {k: v for k, v in network.items() if v is not None}
    if network:
        overrides["network"] = settings.network.model_dump() | network
    if args.dummy:
        overrides["use_dummy_mode"] = True
    if args.log_level:
        overrides["logging"] = settings.logging.model_dump() | {"level": args.log_level.upper()}

    if not overrides:
        return settings
    # Re-validate so flag values get the same checks as environment values.
    return BridgeSettings.model_validate(settings.model_dump() | overrides)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)

    # 1. Load Configuration
    try:
        settings = load_settings(args)
    except ValidationError as e:
        print(f"Configuration Error: {e}", file=sys.stderr)
        return 1

    # 2. Setup Logging
    logging.basicConfig(
        level=settings.logging.level,
        format=settings.logging.format,
        stream=sys.stdout
    )
    logger = logging.getLogger("main")
    logger.info(f"Tobii Bridge Server v{__version__}")
    if settings.use_dummy_mode:
        logger.warning("Initializing DUMMY provider (Simulation Mode)")

    # 3. Build and start
    server = create_server(settings)
    try:
        server.start()
    except BridgeStartupError as e:
        logger.error("Failed to start server: %s", e)
        return 1

    # SIGTERM gets the same clean shutdown as Ctrl+C.
    signal.signal(signal.SIGTERM, signal.default_int_handler)

    logger.info("Server running. Press Ctrl+C to stop...")
    try:
        server.wait_for_completion()
    except KeyboardInterrupt:
        logger.info("Shutdown sequence initiated.")
    finally:
        server.stop()

    return 0


if __name__ == "__main__":
    sys.exit(main())
