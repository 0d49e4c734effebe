#!/usr/bin/env python3
"""Run the share gate with explicit args (avoids shell interpolation).

With ENVIRONMENT=local the app starts on an empty in-memory store, so every
token answers 404. Pass ``--demo-password`` to register one protected
report under ``--demo-token`` (default ``tok_demo0000000000000000``).
"""
from __future__ import annotations

import argparse

import uvicorn

from share_gate import ShareGateSettings, create_app
from share_gate.inmemory import DEMO_SHARE_TOKEN, seed_demo_share
from share_gate.observability import configure_logging


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser()
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--port", type=int, default=8000)
    parser.add_argument("--log-level", default=None)
    parser.add_argument("--json-logs", action=argparse.BooleanOptionalAction, default=None)
    parser.add_argument("--demo-password", default=None)
    parser.add_argument("--demo-token", default=DEMO_SHARE_TOKEN)
    parser.add_argument("--demo-hint", default=None)
    return parser.parse_args()


def main() -> int:
    args = parse_args()
    configure_logging(level=args.log_level, json_output=args.json_logs)
    settings = ShareGateSettings.from_env()
    if args.demo_password and not settings.is_local:
        raise SystemExit("--demo-password is only supported with ENVIRONMENT=local")
    app = create_app(settings)
    if args.demo_password:
        seed_demo_share(
            app.state.deps.store,
            app.state.deps.renderer,
            password=args.demo_password,
            token=args.demo_token,
            hint=args.demo_hint,
        )
    uvicorn.run(app, host=args.host, port=args.port, log_config=None)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
