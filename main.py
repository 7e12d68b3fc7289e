import argparse
import asyncio
import logging
import platform
import signal
import sys

from aiohttp import web
from dotenv import load_dotenv

from class_checker.config import CheckerConfig
from class_checker.errors import StoreLoadError, TokenError
from class_checker.orchestrator import ClassChecker
from class_checker.server import create_app

log = logging.getLogger("main")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Watch course sections and mail subscribers when seats open or fill.")
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("--once", action="store_true", help="run a single pass, print the summary and exit")
    mode.add_argument("--serve", action="store_true", help="serve the /checkClasses trigger endpoint instead of polling")
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--port", type=int, default=8080)
    parser.add_argument("--catalog", choices=("api", "legacy"), help="catalog generation to query")
    parser.add_argument("--notifier", choices=("email", "console"))
    parser.add_argument("--db", dest="database_path", help="SQLite file holding tracked sections")
    parser.add_argument("--interval", dest="poll_interval", type=float, help="seconds between passes")
    parser.add_argument("-v", "--verbose", action="store_true")
    return parser.parse_args(argv)


async def run_once(checker: ClassChecker) -> int:
    try:
        report = await checker.check_once()
    except (StoreLoadError, TokenError) as exc:
        log.error("Pass aborted: %s", exc)
        return 1
    print(report.to_text(), end="", flush=True)
    return 0


async def serve(checker: ClassChecker, host: str, port: int) -> None:
    runner = web.AppRunner(create_app(checker))
    await runner.setup()
    site = web.TCPSite(runner, host, port)
    await site.start()
    log.info("Serving /checkClasses on http://%s:%d", host, port)
    try:
        await asyncio.Event().wait()
    finally:
        await runner.cleanup()


async def main(args: argparse.Namespace) -> int:
    config = CheckerConfig.from_env(
        catalog_mode=args.catalog,
        notifier=args.notifier,
        database_path=args.database_path,
        poll_interval=args.poll_interval,
    )

    async with ClassChecker(config) as checker:
        if args.once:
            return await run_once(checker)

        worker = serve(checker, args.host, args.port) if args.serve else checker.run_forever()
        task = asyncio.ensure_future(worker)
        loop = asyncio.get_running_loop()

        if platform.system() != "Windows":

            def _shutdown(sig: signal.Signals) -> None:
                log.info("Received %s — shutting down gracefully...", sig.name)
                checker.stop()
                if args.serve:
                    task.cancel()

            for sig in (signal.SIGINT, signal.SIGTERM):
                loop.add_signal_handler(sig, _shutdown, sig)

            try:
                await task
            except asyncio.CancelledError:
                log.info("Checker stopped.")

        else:
            try:
                await task
            except (asyncio.CancelledError, KeyboardInterrupt):
                log.info("Shutting down...")
                checker.stop()
                task.cancel()
                await asyncio.gather(task, return_exceptions=True)
                log.info("Checker stopped.")
    return 0


def cli() -> None:
    load_dotenv()
    args = parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s  %(levelname)-8s  %(name)s  %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    sys.exit(asyncio.run(main(args)))


if __name__ == "__main__":
    cli()
