#!/usr/bin/env python3
"""
autocaptcha command line.

    autocaptcha detect URL
    autocaptcha solve URL [--no-fill]
    autocaptcha select URL --mode image|input
    autocaptcha recognize IMAGE_FILE
    autocaptcha test-provider
    autocaptcha models
    autocaptcha rules list
    autocaptcha rules delete HOST
"""

import argparse
import asyncio
import json
import logging
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import List, Optional

from .config import config
from .errors import CaptchaError
from .orchestrator import RecognitionOrchestrator
from .providers import ProviderConfig, list_models, recognize, test_connection
from .run_logger import RunLogger
from .storage import JsonStore

logger = logging.getLogger(__name__)

SELECT_TIMEOUT_DEFAULT = 120.0


@asynccontextmanager
async def open_page(url: str, headless: bool = True):
    """Launch Chromium, open ``url`` and yield a PlaywrightPage."""
    from playwright.async_api import async_playwright
    from .dom.page import PlaywrightPage

    async with async_playwright() as playwright:
        browser = await playwright.chromium.launch(
            headless=headless,
            args=["--no-sandbox", "--disable-dev-shm-usage"],
        )
        try:
            page = await browser.new_page()
            await page.goto(url, wait_until="load")
            await page.wait_for_timeout(config.detect_delay_ms)
            yield PlaywrightPage(page, screenshot_fallback=config.screenshot_fallback)
        finally:
            await browser.close()


def _store(args: argparse.Namespace) -> JsonStore:
    return JsonStore(getattr(args, "store", None))


def _provider_config(args: argparse.Namespace) -> ProviderConfig:
    provider_config = _store(args).get_api_config()
    if getattr(args, "provider", None):
        provider_config.kind = args.provider
    return provider_config


def _run_logger(args: argparse.Namespace, url: Optional[str]) -> Optional[RunLogger]:
    if not (getattr(args, "log", False) or config.run_log):
        return None
    return RunLogger(url=url, command_line=" ".join(sys.argv), log_dir=config.log_dir)


def _print_json(data) -> None:
    print(json.dumps(data, indent=2, ensure_ascii=False))


# --- Page commands ---

async def _detect(args: argparse.Namespace) -> int:
    async with open_page(args.url, headless=config.headless) as page:
        orchestrator = RecognitionOrchestrator(page, store=_store(args), run_logger=_run_logger(args, args.url))
        result = await orchestrator.detect()
    _print_json(result.to_dict())
    return 0 if result.found else 1


def cmd_detect(args: argparse.Namespace) -> int:
    return asyncio.run(_detect(args))


async def _solve(args: argparse.Namespace) -> int:
    async with open_page(args.url, headless=config.headless) as page:
        orchestrator = RecognitionOrchestrator(
            page,
            store=_store(args),
            run_logger=_run_logger(args, args.url),
            auto_fill=False if args.no_fill else None,
        )
        result = await orchestrator.recognize_and_fill()
    if result.success:
        print(result.text)
        return 0
    print(f"{result.error_kind.value if result.error_kind else 'UnknownError'}: {result.message}", file=sys.stderr)
    return 1


def cmd_solve(args: argparse.Namespace) -> int:
    return asyncio.run(_solve(args))


async def _select(args: argparse.Namespace) -> int:
    async with open_page(args.url, headless=False) as page:
        orchestrator = RecognitionOrchestrator(page, store=_store(args))
        pending = await orchestrator.start_manual_selection(args.mode)
        print(f"Click the captcha {args.mode} in the browser window (Esc to cancel)", file=sys.stderr)
        try:
            selection = await asyncio.wait_for(pending, timeout=args.timeout)
        except asyncio.TimeoutError:
            print("Selection timed out", file=sys.stderr)
            return 1
        if selection is None:
            print("Selection cancelled", file=sys.stderr)
            return 1
        rule = orchestrator.rule
    _print_json({"hostname": rule.origin, **rule.to_dict()})
    return 0


def cmd_select(args: argparse.Namespace) -> int:
    return asyncio.run(_select(args))


# --- Provider commands ---

def cmd_recognize(args: argparse.Namespace) -> int:
    path = Path(args.image)
    if not path.is_file():
        print(f"Image not found: {path}", file=sys.stderr)
        return 1
    result = asyncio.run(recognize(path.read_bytes(), _provider_config(args)))
    if result.success:
        print(result.text)
        return 0
    print(f"{result.error_kind.value}: {result.message}", file=sys.stderr)
    return 1


def cmd_test_provider(args: argparse.Namespace) -> int:
    result = asyncio.run(test_connection(_provider_config(args)))
    print(result.message)
    return 0 if result.success else 1


def cmd_models(args: argparse.Namespace) -> int:
    try:
        models = asyncio.run(list_models(_provider_config(args)))
    except CaptchaError as e:
        print(f"{e.kind.value}: {e}", file=sys.stderr)
        return 1
    for model in models:
        print(f"{model['id']}\t{model['name']}")
    return 0


# --- Rules ---

def cmd_rules_list(args: argparse.Namespace) -> int:
    rules = _store(args).get_site_rules()
    _print_json({origin: rule.to_dict() for origin, rule in rules.items()})
    return 0


def cmd_rules_delete(args: argparse.Namespace) -> int:
    if _store(args).delete_site_rule(args.host):
        print(f"Deleted rule for {args.host}")
        return 0
    print(f"No rule for {args.host}", file=sys.stderr)
    return 1


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="autocaptcha", description="autocaptcha - detect, select and solve image captchas")
    p.add_argument("--store", help="Path of the JSON store (default: workspace/autocaptcha.json)")
    p.add_argument("--log", action="store_true", help="Write a markdown run log")
    p.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = p.add_subparsers(dest="sub")

    p_detect = sub.add_parser("detect", help="Detect captcha image/input pairs on a page")
    p_detect.add_argument("url")
    p_detect.set_defaults(func=cmd_detect)

    p_solve = sub.add_parser("solve", help="Detect, recognize and fill the captcha on a page")
    p_solve.add_argument("url")
    p_solve.add_argument("--no-fill", action="store_true", help="Print the answer without filling the input")
    p_solve.set_defaults(func=cmd_solve)

    p_select = sub.add_parser("select", help="Pick the captcha image or input by hand and save a site rule")
    p_select.add_argument("url")
    p_select.add_argument("--mode", choices=["image", "input"], required=True)
    p_select.add_argument("--timeout", type=float, default=SELECT_TIMEOUT_DEFAULT, help="Seconds to wait for a click")
    p_select.set_defaults(func=cmd_select)

    p_rec = sub.add_parser("recognize", help="Recognize an image file with the active provider")
    p_rec.add_argument("image")
    p_rec.add_argument("--provider", help="Override the active provider type")
    p_rec.set_defaults(func=cmd_recognize)

    p_test = sub.add_parser("test-provider", help="Check the active provider with a 1x1 test image")
    p_test.add_argument("--provider", help="Override the active provider type")
    p_test.set_defaults(func=cmd_test_provider)

    p_models = sub.add_parser("models", help="List models offered by the active provider")
    p_models.add_argument("--provider", help="Override the active provider type")
    p_models.set_defaults(func=cmd_models)

    p_rules = sub.add_parser("rules", help="Manage saved site rules")
    rules_sub = p_rules.add_subparsers(dest="rules_cmd")
    p_rlist = rules_sub.add_parser("list", help="List site rules")
    p_rlist.set_defaults(func=cmd_rules_list)
    p_rdel = rules_sub.add_parser("delete", help="Delete the rule of a hostname")
    p_rdel.add_argument("host")
    p_rdel.set_defaults(func=cmd_rules_delete)

    return p


def main(argv: Optional[List[str]] = None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if (args.verbose or config.enable_debug) else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    )
    if not hasattr(args, "func"):
        parser.print_help()
        return 0
    return int(args.func(args) or 0)


if __name__ == "__main__":
    raise SystemExit(main())
