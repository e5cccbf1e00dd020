#!/usr/bin/env python3
from __future__ import annotations

import argparse
import logging
from typing import Optional, Sequence

from lookbook.config import settings
from lookbook.db.base import session_scope
from lookbook.services.image_cleanup import ImageCleanupService


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        description="Delete expired generated images from storage and clear their storage location."
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="List expired images without deleting anything.",
    )
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, str(settings.LOG_LEVEL).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )

    with session_scope() as session:
        service = ImageCleanupService(session)
        if args.dry_run:
            candidates = service.list_candidates()
            for record in candidates:
                print(f"{record.id}\t{record.expires_at.isoformat() if record.expires_at else '-'}\t{record.image_path}")
            print(f"dry-run: candidates={len(candidates)}")
            return 0
        result = service.delete_expired_images()

    print(f"write: candidates={result.candidates} purged={result.purged} failed={result.failed}")
    return 1 if result.failed else 0


if __name__ == "__main__":
    raise SystemExit(main())
