"""
Operator CLI for the order service.

Examples:
  linecut watch --uid USER_ID --limit 1
  linecut show --uid USER_ID ORDER_ID
  linecut rate --uid USER_ID STORE_ID ORDER_ID --quality 5 --speed 4 --service 5
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import Any, Optional, Sequence

from linecut.auth.auth import AuthProvider, FirebaseTokenAuthProvider, StaticAuthProvider
from linecut.common.config import load_config
from linecut.common.logging import bind_correlation_id, init_structured_logging
from linecut.orders.errors import OrderPipelineError, RatingValidationError
from linecut.orders.repository import OrderRepository
from linecut.persistence.document_store import DocumentStore, FirebaseDocumentStore, StoreError
from linecut.persistence.rtdb_retry import request_shutdown

logger = logging.getLogger(__name__)


def _print_json(obj: Any) -> None:
    sys.stdout.write(json.dumps(obj, ensure_ascii=False, default=str) + "\n")
    sys.stdout.flush()


def _score(raw: str) -> int:
    try:
        v = int(raw)
    except ValueError as e:
        raise argparse.ArgumentTypeError("Expected an integer between 1 and 5") from e
    if not 1 <= v <= 5:
        raise argparse.ArgumentTypeError("Expected an integer between 1 and 5")
    return v


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="linecut", description="LineCut customer order tools.")
    who = parser.add_mutually_exclusive_group()
    who.add_argument("--uid", default=None, help="Act as this Firebase Auth uid.")
    who.add_argument("--id-token", default=None, help="Act as the user of this Firebase ID token.")

    sub = parser.add_subparsers(dest="command", required=True)

    watch = sub.add_parser("watch", help="Stream the user's aggregated orders as JSON lines.")
    watch.add_argument("--limit", type=int, default=None, help="Stop after this many emissions.")

    show = sub.add_parser("show", help="Print one order with items and payment info.")
    show.add_argument("order_id")

    rate = sub.add_parser("rate", help="Rate an order (scores 1-5).")
    rate.add_argument("store_id")
    rate.add_argument("order_id")
    rate.add_argument("--quality", type=_score, required=True)
    rate.add_argument("--speed", type=_score, required=True)
    rate.add_argument("--service", type=_score, required=True)
    return parser


def _auth_from_args(args: argparse.Namespace) -> AuthProvider:
    if args.id_token:
        return FirebaseTokenAuthProvider(args.id_token)
    return StaticAuthProvider(args.uid)


async def _watch(repo: OrderRepository, *, limit: Optional[int]) -> int:
    emitted = 0
    stream = repo.observe_user_orders()
    try:
        async for orders in stream:
            _print_json({"orders": [o.to_dict() for o in orders]})
            emitted += 1
            if limit is not None and emitted >= limit:
                break
    finally:
        await stream.aclose()
    return 0


async def _run(args: argparse.Namespace, store: DocumentStore, auth: AuthProvider, *, display_tz: str) -> int:
    repo = OrderRepository(store, auth, display_tz=display_tz)
    if args.command == "watch":
        return await _watch(repo, limit=args.limit)
    if args.command == "show":
        detail = await repo.get_order_by_id(args.order_id)
        if detail is None:
            _print_json({"order": None})
            return 1
        _print_json({"order": detail.to_dict()})
        return 0
    if args.command == "rate":
        rating = await repo.save_order_rating(
            args.store_id,
            args.order_id,
            quality=args.quality,
            speed=args.speed,
            service=args.service,
        )
        _print_json({"rating": rating.to_mapping(), "average": rating.average})
        return 0
    raise ValueError(f"unknown command: {args.command}")


def main(argv: Optional[Sequence[str]] = None, *, store: Optional[DocumentStore] = None) -> int:
    args = build_parser().parse_args(argv)
    cfg = load_config()
    init_structured_logging(service=cfg.service_name, env=cfg.env, level=cfg.log_level)

    store = store or FirebaseDocumentStore(config=cfg)
    auth = _auth_from_args(args)
    with bind_correlation_id():
        # Token verification is a blocking network call; settle it before the loop starts.
        auth.current_user_id()
        try:
            return asyncio.run(_run(args, store, auth, display_tz=cfg.display_tz))
        except KeyboardInterrupt:
            # Worker threads may still be sleeping in retry backoff.
            request_shutdown()
            return 130
        except RatingValidationError as e:
            sys.stderr.write(f"ERROR: {e}\n")
            return 2
        except (OrderPipelineError, StoreError) as e:
            logger.error("cli.command_failed command=%s error=%s", args.command, e)
            sys.stderr.write(f"ERROR: {e}\n")
            return 1


if __name__ == "__main__":
    raise SystemExit(main())
