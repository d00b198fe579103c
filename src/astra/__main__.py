from __future__ import annotations

import argparse
import logging
import threading

from astra.core.config import settings


def _repl(runtime) -> None:
    print("Astra is listening. /stop or Ctrl-D to leave.")
    while not runtime.stopping:
        try:
            line = input("> ")
        except EOFError:
            break
        if not line.strip():
            continue
        report = runtime.chat(line)
        if report.reply:
            print(report.reply)
        mood = runtime.status()["mood"]
        print(f"  [{mood}] {', '.join(f'{k}={v:+.2f}' for k, v in report.emotion.items())}")


def main() -> None:
    parser = argparse.ArgumentParser(description="Astra — tick-driven cognitive runtime")
    sub = parser.add_subparsers(dest="command")
    serve = sub.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", default=settings.web_host)
    serve.add_argument("--port", type=int, default=settings.web_port)
    serve.add_argument(
        "--background-ticks", action="store_true",
        help="Also tick continuously so carried-over tasks and decay advance between requests",
    )
    sub.add_parser("repl", help="Chat on the terminal")
    args = parser.parse_args()

    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%H:%M:%S",
    )
    logger = logging.getLogger(__name__)

    from astra.runtime.core import Runtime

    runtime = Runtime(settings)
    try:
        if args.command == "serve":
            from astra.channels.web import serve as serve_http

            if args.background_ticks:
                threading.Thread(target=runtime.run, name="astra-ticks", daemon=True).start()
            serve_http(runtime, args.host, args.port)
        else:
            _repl(runtime)
    except KeyboardInterrupt:
        logger.info("Astra shutting down.")
    finally:
        runtime.close()


if __name__ == "__main__":
    main()
