from __future__ import annotations

import argparse
import json
import sys
import time

from .orchestrator import signing_timestamp
from .settings import settings
from .signer import gen_p256_jwk


def cmd_serve(args: argparse.Namespace) -> int:  # pragma: no cover - starts a server
    import uvicorn

    uvicorn.run("sxg_edge.api.main:app", host=args.host, port=args.port, reload=False)
    return 0


def cmd_gen_jwk(args: argparse.Namespace) -> int:
    print(json.dumps(gen_p256_jwk(), indent=2 if args.pretty else None))
    return 0


def cmd_timestamp(args: argparse.Namespace) -> int:
    now = args.now if args.now is not None else time.time()
    print(signing_timestamp(now, settings.signing_time_skew_seconds))
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="sxg-edge", description="Signed HTTP Exchange edge worker")
    sub = p.add_subparsers(dest="cmd", required=True)

    s = sub.add_parser("serve", help="Run the edge worker on uvicorn")
    s.add_argument("--host", default="127.0.0.1")
    s.add_argument("--port", type=int, default=8000)
    s.set_defaults(func=cmd_serve)

    g = sub.add_parser("gen-jwk", help="Print a new EC P-256 private JWK for PRIVATE_KEY_JWK")
    g.add_argument("--pretty", action="store_true")
    g.set_defaults(func=cmd_gen_jwk)

    t = sub.add_parser("timestamp", help="Print the signing timestamp (unix seconds)")
    t.add_argument("--now", type=float, default=None, help="Wall-clock time to use instead of the current time")
    t.set_defaults(func=cmd_timestamp)
    return p


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
