"""Command line interface for the Face ID kiosk."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import signal
import sys
from pathlib import Path
from typing import Iterable, Optional

from .app import FaceIDKiosk
from .config import Settings, load_settings, save_settings
from .exceptions import ConfigError
from .profiles import ProfileStore

_LOGGER = logging.getLogger(__name__)

DEFAULT_CONFIG = Path("faceid.toml")


def parse_args(argv: Optional[Iterable[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="faceid", description="Face ID kiosk")
    parser.add_argument("--config", type=Path, default=Path(os.environ.get("FACEID_CONFIG", DEFAULT_CONFIG)))
    parser.add_argument("--log-level", default=os.environ.get("FACEID_LOG_LEVEL", "INFO"))
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("run", help="Connect to rosbridge and run the kiosk state machine")
    subparsers.add_parser("profiles", help="List stored profiles")
    init = subparsers.add_parser("init-config", help="Write a configuration file with default values")
    init.add_argument("path", type=Path)
    init.add_argument("--force", action="store_true", help="Overwrite an existing file")
    return parser.parse_args(None if argv is None else list(argv))


def _run(settings: Settings) -> int:
    kiosk = FaceIDKiosk(settings)

    async def runner() -> None:
        stop_event = asyncio.Event()
        loop = asyncio.get_running_loop()
        for signum in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(signum, stop_event.set)
            except (NotImplementedError, RuntimeError):
                _LOGGER.debug("Signal handler for %s unavailable", signum)
        await kiosk.run(stop_event)

    try:
        asyncio.run(runner())
    except KeyboardInterrupt:
        _LOGGER.info("Shutting down Face ID kiosk")
    return 0


def _list_profiles(settings: Settings) -> int:
    store = ProfileStore(settings.storage.root)
    profiles = store.load_all()
    if not profiles:
        print(f"No profiles in {store.root}")
        return 0
    for profile in profiles:
        print(f"{profile.folder_name}\t{profile.display_name}\t{profile.person_id}\t{len(profile.images)} photo(s)")
    return 0


def _init_config(path: Path, force: bool) -> int:
    if path.exists() and not force:
        print(f"{path} already exists; pass --force to overwrite", file=sys.stderr)
        return 1
    save_settings(path, Settings())
    print(f"Wrote default configuration to {path}")
    return 0


def main(argv: Optional[Iterable[str]] = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command == "init-config":
        return _init_config(args.path, args.force)

    try:
        settings = load_settings(args.config)
    except ConfigError as exc:
        _LOGGER.error("%s", exc)
        return 2

    if args.command == "profiles":
        return _list_profiles(settings)
    return _run(settings)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
