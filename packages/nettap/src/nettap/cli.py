"""Command line for nettap.

Usage:
    nettap pages                       List open tabs
    nettap watch <page> [<page>...]    Forward traffic of tabs (index or tab id)
    nettap pending                     Count pending requests
    nettap prune [seconds]             Evict pending requests older than seconds

Options (before the command):
    --config PATH                      Use this nettap.toml
    -v                                 Debug logging
"""

import sys
import threading
from pathlib import Path

from nettap.cdp import BrowserSession
from nettap.config import load_config
from nettap.errors import NetTapError
from nettap.logs import setup_logging
from nettap.monitor import TabMonitor
from nettap.store import PendingRequestStore
from nettap.targets import make_target

__all__ = ["main"]

STATUS_INTERVAL = 30.0


def _usage() -> int:
    print(__doc__.split("\n\n", 1)[1].rstrip())
    return 2


def _pages(config, args: list[str]) -> int:
    browser = BrowserSession(port=config.capture.port, host=config.capture.host)
    pages = browser.list_pages()
    if not pages:
        print("No pages available")
        return 1
    for index, page in enumerate(pages):
        tab_id = make_target(browser.port, page.get("id", ""))
        print(f"{index:>3}  {tab_id}  {page.get('title', '')[:40]:<40}  {page.get('url', '')}")
    return 0


def _watch(config, args: list[str]) -> int:
    if not args:
        return _usage()

    monitor = TabMonitor(config)
    stopped = threading.Event()
    try:
        monitor.start()
        for page in args:
            tab_id = monitor.watch(page)
            print(f"Watching {tab_id}")

        while not stopped.wait(STATUS_INTERVAL):
            status = monitor.status()
            if not status["tabs"]:
                print("No tabs left to watch")
                break
            print(f"pending={status['pending']} " + " ".join(f"{t}={dict(s)}" for t, s in status["tabs"].items()))
    except KeyboardInterrupt:
        pass
    finally:
        monitor.stop()
    return 0


def _pending(config, args: list[str]) -> int:
    store = PendingRequestStore(config.store_path)
    try:
        print(store.count(all_scopes=True))
    finally:
        store.close()
    return 0


def _prune(config, args: list[str]) -> int:
    seconds = float(args[0]) if args else config.store.pending_ttl
    if seconds <= 0:
        print("Error: give an age in seconds or set store.pending_ttl")
        return 2

    store = PendingRequestStore(config.store_path)
    try:
        print(f"Evicted {store.evict_older_than(seconds)} pending requests")
    finally:
        store.close()
    return 0


COMMANDS = {
    "pages": _pages,
    "watch": _watch,
    "pending": _pending,
    "prune": _prune,
}


def main(argv: list[str] | None = None) -> int:
    """Run a nettap command.

    Args:
        argv: Arguments without the program name. Defaults to sys.argv[1:].

    Returns:
        Process exit code
    """
    args = list(sys.argv[1:] if argv is None else argv)

    config_path = None
    level = "INFO"
    while args and args[0].startswith("-"):
        option = args.pop(0)
        if option == "-v":
            level = "DEBUG"
        elif option == "--config" and args:
            config_path = Path(args.pop(0))
        else:
            return _usage()

    if not args or args[0] not in COMMANDS:
        return _usage()

    setup_logging(level)
    command, rest = args[0], args[1:]

    try:
        config = load_config(config_path)
        return COMMANDS[command](config, rest)
    except (NetTapError, RuntimeError, TimeoutError, IndexError, ValueError) as e:
        print(f"Error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
