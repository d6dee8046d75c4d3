from __future__ import annotations

import argparse
import logging
from pathlib import Path
import sys
from typing import Sequence

_MISSING_BROWSER_ERROR_HINTS = (
    "executable doesn't exist",
    "executable does not exist",
    "download new browsers",
    "playwright install",
    "could not find browser",
    "failed to launch chromium because executable",
)


def _is_missing_browser_error(exc: Exception) -> bool:
    message = str(exc).lower()
    return any(hint in message for hint in _MISSING_BROWSER_ERROR_HINTS)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="treelocator", description="Compute and resolve structural element locators.")
    parser.add_argument("--config", type=Path, default=None, help="Path to a treelocator config.json.")
    parser.add_argument("--headed", action="store_true", help="Show the browser window.")
    commands = parser.add_subparsers(dest="command", required=True)

    path_command = commands.add_parser("path", help="Print the locator for the first element matching a CSS selector.")
    path_command.add_argument("url")
    path_command.add_argument("selector")

    find_command = commands.add_parser("find", help="Resolve a locator and describe the element it points to.")
    find_command.add_argument("url")
    find_command.add_argument("locator")

    init_command = commands.add_parser("init-config", help="Write the default config to the --config path.")
    init_command.add_argument("--force", action="store_true", help="Overwrite an existing config file.")
    return parser


def init_config(args: argparse.Namespace) -> int:
    from .config import CONFIG_PATH, LocatorConfig, build_logger, save_locator_config

    path = args.config or CONFIG_PATH
    if path.exists() and not args.force:
        print(f"{path} already exists. Pass --force to overwrite it.", file=sys.stderr)
        return 1

    build_logger("treelocator")
    ok, message = save_locator_config(LocatorConfig(), path)
    if not ok:
        print(message, file=sys.stderr)
        return 1
    print(path)
    return 0


def run(args: argparse.Namespace) -> int:
    from playwright.sync_api import Error as PlaywrightError
    from playwright.sync_api import sync_playwright

    from .config import build_logger, load_locator_config
    from .dom_snapshot import capture_snapshot, describe_element, element_for_handle, handle_for_element
    from .locator import ComponentLocator

    config = load_locator_config(args.config)
    build_logger("treelocator", config.log_level)
    logger = logging.getLogger("treelocator.cli")

    try:
        with sync_playwright() as playwright:
            browser = playwright.chromium.launch(headless=not args.headed)
            try:
                page = browser.new_page()
                page.goto(args.url, wait_until="domcontentloaded")
                registry = capture_snapshot(page, config.attributes)
                locator = ComponentLocator(registry, config)

                if args.command == "path":
                    handle = page.query_selector(args.selector)
                    if handle is None:
                        print(f"No element matches {args.selector!r}.", file=sys.stderr)
                        return 1
                    element = element_for_handle(registry, handle)
                    result = locator.explain_node(element) if element is not None else None
                    if result is None or not result.ok:
                        message = result.message if result is not None else "Element is outside the snapshot."
                        print(f"No locator: {message}", file=sys.stderr)
                        return 1
                    print(result.value)
                    return 0

                result = locator.explain_path(args.locator)
                if not result.ok:
                    print(f"{result.status}: {result.message}", file=sys.stderr)
                    return 2 if result.status == "malformed_path" else 1
                print(describe_element(result.value))
                live = handle_for_element(page, result.value)
                box = live.bounding_box() if live is not None else None
                if box:
                    print(f"box: x={box['x']:g} y={box['y']:g} width={box['width']:g} height={box['height']:g}")
                return 0
            finally:
                browser.close()
    except PlaywrightError as exc:
        if _is_missing_browser_error(exc):
            print("Chromium is not installed. Run `playwright install chromium`.", file=sys.stderr)
            return 3
        logger.exception("Browser session failed.")
        print(f"Browser session failed: {exc}", file=sys.stderr)
        return 3


def main(argv: Sequence[str] | None = None) -> int:
    if sys.version_info < (3, 11):
        raise SystemExit(
            "treelocator requires Python 3.11+. "
            f"Current interpreter: {sys.executable} (Python {sys.version.split()[0]})"
        )
    args = build_parser().parse_args(argv)
    if args.command == "init-config":
        return init_config(args)
    try:
        return run(args)
    except ModuleNotFoundError as exc:
        if exc.name == "playwright":
            raise SystemExit(
                "playwright is not installed in this interpreter. "
                "Activate the project venv and run `pip install -e .`."
            ) from exc
        raise


if __name__ == "__main__":
    raise SystemExit(main())
