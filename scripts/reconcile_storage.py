from __future__ import annotations

import argparse
import asyncio
import json
import logging

logger = logging.getLogger("reconcile_storage")


async def run(*, user_ids: list[int] | None) -> list[dict[str, object]]:
    # Import lazily so argparse --help stays fast.
    from notes_backend.db import dispose_engine, session_scope
    from notes_backend.deps import get_attachment_lifecycle
    from notes_backend.services import users_service

    lifecycle = get_attachment_lifecycle()
    out: list[dict[str, object]] = []
    try:
        if not user_ids:
            async with session_scope() as session:
                user_ids = await users_service.list_user_ids(session)

        for user_id in user_ids:
            async with session_scope() as session:
                if await users_service.get_user(session, user_id=user_id) is None:
                    logger.warning("skipping unknown user_id=%s", user_id)
                    out.append({"user_id": user_id, "error": "user_not_found"})
                    continue
                ledger = await lifecycle.reconcile(session, user_id=user_id)
            out.append(
                {
                    "user_id": ledger.user_id,
                    "used_bytes": ledger.used_bytes,
                    "file_count": ledger.file_count,
                    "image_count": ledger.image_count,
                    "document_count": ledger.document_count,
                }
            )
    finally:
        await dispose_engine()
    return out


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Recompute per-user storage quota ledgers from live attachments."
    )
    parser.add_argument(
        "--user-id",
        type=int,
        action="append",
        dest="user_ids",
        help="User to reconcile (repeatable). Default: every user.",
    )
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO)
    results = asyncio.run(run(user_ids=args.user_ids))
    print(json.dumps(results, ensure_ascii=True, indent=2))
    # Non-zero when any requested user does not exist.
    return 1 if any("error" in r for r in results) else 0


if __name__ == "__main__":
    raise SystemExit(main())
