"""
Course Catalog CLI Commands

Each command class dispatches on its `<command>_action` argument and returns
a process exit code.
"""
import asyncio

from catalog.exceptions import CatalogException


class DbCommand:
    """Database CLI command handler."""

    def execute(self, args) -> int:
        if args.db_action == "init":
            return self._init()
        print("Error: Unknown database action")
        return 1

    def _init(self) -> int:
        from catalog.database import close_db, init_db

        async def run():
            try:
                await init_db()
            finally:
                await close_db()

        print("=== Database Init ===")
        asyncio.run(run())
        print("✓ Catalog tables ready")
        return 0


class TrendingCommand:
    """Trending score CLI command handler."""

    def execute(self, args) -> int:
        if args.trending_action == "recompute":
            return self._recompute(args)
        print("Error: Unknown trending action")
        return 1

    def _recompute(self, args) -> int:
        from catalog.database import AsyncSessionLocal, close_db
        from catalog.services.course_service import CourseCatalog

        async def run():
            try:
                catalog = CourseCatalog(AsyncSessionLocal, args.variant)
                return await catalog.recompute_trending(args.id, force=args.force)
            finally:
                await close_db()

        try:
            score = asyncio.run(run())
        except CatalogException as e:
            print(f"Error: {e.message}")
            return 1
        print(f"{args.variant} course {args.id}: trending score {score}")
        return 0


class EnrollmentCommand:
    """Offline enrollment status CLI command handler."""

    def execute(self, args) -> int:
        if args.enrollment_action == "refresh":
            return self._refresh()
        print("Error: Unknown enrollment action")
        return 1

    def _refresh(self) -> int:
        from catalog.database import close_db
        from catalog.tasks.enrollment_refresh import run_refresh_once

        async def run():
            try:
                return await run_refresh_once()
            finally:
                await close_db()

        try:
            changed = asyncio.run(run())
        except CatalogException as e:
            print(f"Error: {e.message}")
            return 1
        print(f"✓ Enrollment status refreshed: {changed} course(s) changed")
        return 0
