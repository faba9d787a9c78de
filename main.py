"""Infinite Adventure — dev launcher. Serves the turn endpoint or plays in the terminal."""

import argparse
import asyncio
import logging
import subprocess
import sys
from pathlib import Path

from infinite_adventure.config import get_config, load_env

ROOT = Path(__file__).parent
load_env()


def serve(config: dict) -> None:
    host, port = config["host"], str(config["backend_port"])
    print(f"Starting backend on http://localhost:{port} ...")
    proc = subprocess.Popen(
        [sys.executable, "-m", "uvicorn", "backend.app:app", "--reload",
         "--host", host, "--port", port],
        cwd=ROOT,
    )
    try:
        proc.wait()
    except KeyboardInterrupt:
        print("\nShutting down...")
        proc.terminate()
        proc.wait()


def play(config: dict, theme_name: str) -> None:
    from infinite_adventure.client import HttpTurnClient
    from infinite_adventure.play import THEMES, play as play_loop
    from infinite_adventure.session import SessionController
    from infinite_adventure.storage import create_save_store

    controller = SessionController(
        HttpTurnClient(config["game_api_url"], timeout=config["game_api_timeout"]),
        create_save_store(config),
    )
    try:
        asyncio.run(play_loop(controller, THEMES[theme_name]))
    except (KeyboardInterrupt, EOFError):
        print("\nBye.")


def main():
    parser = argparse.ArgumentParser(description="Infinite Adventure dev launcher")
    parser.add_argument("command", choices=["serve", "play"], nargs="?", default="serve")
    parser.add_argument("--theme", choices=["neon", "parchment"], default="neon",
                        help="Terminal theme for play (default: neon)")
    parser.add_argument("--verbose", action="store_true", help="Debug logging")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = get_config()
    if args.command == "play":
        play(config, args.theme)
    else:
        serve(config)


if __name__ == "__main__":
    main()
