from __future__ import annotations

import argparse
import sys


def _doctor() -> int:
    print(f"[tweaqengine doctor] sys.executable={sys.executable}")
    print(f"[tweaqengine doctor] sys.version={sys.version}")
    try:
        import playwright.sync_api  # noqa: F401
    except ModuleNotFoundError as exc:
        if exc.name and exc.name.startswith("playwright"):
            print("[tweaqengine doctor] playwright is not installed; live pages are unavailable.")
            return 1
        raise
    print("[tweaqengine doctor] playwright available")
    return 0


def _simplify(selector: str) -> int:
    from .stabilizer import format_selector_for_display, simplify_selector

    simplified = simplify_selector(selector)
    if simplified is None:
        print(f"No tag could be extracted from {selector!r}")
        return 1
    print(f"{simplified}\t({format_selector_for_display(simplified)})")
    return 0


def _resolve(url: str, phrase: str, width: int, height: int) -> int:
    from playwright.sync_api import sync_playwright

    from .logs import build_logger
    from .page_provider import normalize_viewport_size
    from .playwright_page import PlaywrightPageProvider
    from .resolver import ElementResolver
    from .stabilizer import selector_for_handle

    build_logger()
    viewport = normalize_viewport_size(width, height)
    with sync_playwright() as playwright:
        browser = playwright.chromium.launch(headless=True)
        try:
            page = browser.new_page(viewport={"width": viewport[0], "height": viewport[1]})
            page.goto(url, wait_until="domcontentloaded")
            provider = PlaywrightPageProvider(page)
            outcome = ElementResolver(provider).resolve_outcome(phrase)
            print(f"{outcome.status}: {len(outcome.candidates)} candidate(s)")
            for candidate in outcome.candidates:
                selector = selector_for_handle(provider, candidate.handle) or "?"
                print(f"  {candidate.confidence:.2f}  score={candidate.score:<7} {selector}")
            if outcome.issue is not None:
                print(f"  {outcome.issue.kind}: {outcome.issue.message}")
        finally:
            browser.close()
    return 0 if outcome.status == "resolved" else 1


def main(argv: list[str] | None = None) -> int:
    if sys.version_info < (3, 11):
        raise SystemExit(
            "tweaqengine requires Python 3.11+. "
            f"Current interpreter: {sys.executable} (Python {sys.version.split()[0]})"
        )

    parser = argparse.ArgumentParser(prog="tweaqengine")
    commands = parser.add_subparsers(dest="command")
    commands.add_parser("doctor", help="Report interpreter and browser stack")
    simplify = commands.add_parser("simplify", help="Print the stabilized form of a CSS selector")
    simplify.add_argument("selector")
    resolve = commands.add_parser("resolve", help="Rank page elements for a free-text target")
    resolve.add_argument("url")
    resolve.add_argument("phrase")
    resolve.add_argument("--width", type=int, default=1280)
    resolve.add_argument("--height", type=int, default=720)

    args = parser.parse_args(argv)
    if args.command == "simplify":
        return _simplify(args.selector)
    if args.command == "resolve":
        return _resolve(args.url, args.phrase, args.width, args.height)
    return _doctor()


if __name__ == "__main__":
    raise SystemExit(main())
