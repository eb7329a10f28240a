from __future__ import annotations

import argparse
import asyncio

from .adapters.base import LookupServiceError
from .adapters.supabase import SupabaseAdapter
from .config import Settings, load_settings
from .core.models import Category
from .core.storage import LocalMirror
from .data.store import CurationStore
from .logging_config import setup_logging
from .session import CurationSession


def build_backend(settings: Settings) -> SupabaseAdapter | CurationStore:
    """Return the Supabase adapter when configured, else the JSON store."""
    if settings.use_supabase:
        return SupabaseAdapter(settings.supabase_url, settings.supabase_key)
    return CurationStore(path=settings.data_path)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="collab-curation")
    parser.add_argument("command", choices=["status", "save", "reset"])
    parser.add_argument("--curator", required=True, help="Curator profile id")
    parser.add_argument("--period", required=True, help="Period id")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    log = setup_logging()
    args = parse_args(argv)
    settings = load_settings()
    if settings.use_supabase and not settings.supabase_key:
        log.error(
            "SUPABASE_KEY is not set. "
            "Export it in your environment before running."
        )
        return 2

    backend = build_backend(settings)
    session = CurationSession(
        args.curator,
        args.period,
        lookup=backend,
        store=backend,
        mirror=LocalMirror(settings.mirror_path),
        slot_budget=settings.slot_budget,
    )

    async def runner() -> int:
        try:
            await session.load()
            if args.command == "reset":
                await session.reset()
                log.info("Selections reset.")
                return 0
            if args.command == "status":
                for category in Category:
                    log.info(
                        "%s: %s",
                        category.value,
                        ", ".join(session.manager.selected(category)) or "-",
                    )
                log.info(
                    "%d of %d slots remaining",
                    session.manager.remaining_slots(),
                    settings.slot_budget,
                )
                return 0
            report = await session.save()
            log.info(report.message)
            return 0 if report.ok else 1
        except LookupServiceError as exc:
            log.error("Backend unavailable: %s", exc)
            return 1
        finally:
            if isinstance(backend, SupabaseAdapter):
                await backend.close()

    return asyncio.run(runner())


if __name__ == "__main__":
    raise SystemExit(main())
