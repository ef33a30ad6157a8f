#!/usr/bin/env python3
"""Seed a fresh database with the default leave types and an admin account.

Safe to re-run: existing leave type codes and an existing admin username
are left untouched.

Usage:
    python scripts/seed.py                       # uses DEFAULT_ADMIN_* settings
    python scripts/seed.py --admin-password s3cret-pass
    python scripts/seed.py --skip-admin          # leave types only
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from decimal import Decimal
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from sqlalchemy import func, select  # noqa: E402

from hrportal.auth.models import User  # noqa: E402
from hrportal.auth.service import register_user  # noqa: E402
from hrportal.common.constants import UserRole  # noqa: E402
from hrportal.config import settings  # noqa: E402
from hrportal.database import async_session_factory, engine  # noqa: E402
from hrportal.leave.models import LeaveType  # noqa: E402

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("seed")

# (code, name, description, quota, carry_forward, requires_approval, max_consecutive)
DEFAULT_LEAVE_TYPES = [
    ("AL", "Annual Leave", "Paid annual leave", 20, True, True, 15),
    ("SL", "Sick Leave", "Short illness, no approval needed", 10, False, False, 5),
    ("CL", "Casual Leave", "Personal or urgent work", 12, False, True, 0),
    ("ML", "Maternity Leave", "Maternity leave as per policy", 90, False, True, 0),
    ("PL", "Paternity Leave", "Paternity leave for new fathers", 14, False, True, 0),
    ("UL", "Unpaid Leave", "Leave without pay", 30, False, True, 0),
]


async def seed_leave_types(session) -> int:
    existing = set((await session.execute(select(LeaveType.code))).scalars().all())
    created = 0
    for code, name, description, quota, carry, approval, max_days in DEFAULT_LEAVE_TYPES:
        if code in existing:
            logger.info("Leave type %s already present", code)
            continue
        session.add(LeaveType(
            code=code,
            name=name,
            description=description,
            default_annual_quota=Decimal(quota),
            is_carry_forward=carry,
            requires_approval=approval,
            max_consecutive_days=max_days,
            is_active=True,
        ))
        created += 1
    await session.flush()
    return created


async def seed_admin(session, username: str, email: str, password: str) -> bool:
    found = await session.execute(
        select(User.id).where(func.lower(User.username) == username.lower())
    )
    if found.first():
        logger.info("Admin user %s already present", username)
        return False
    await register_user(
        session,
        username=username,
        email=email,
        password=password,
        full_name="System Administrator",
        roles=[UserRole.admin],
    )
    return True


async def run(args: argparse.Namespace) -> None:
    async with async_session_factory() as session:
        created = await seed_leave_types(session)
        logger.info("Created %d leave type(s)", created)

        if not args.skip_admin:
            password = args.admin_password or settings.DEFAULT_ADMIN_PASSWORD
            if not password:
                logger.error("No admin password: pass --admin-password or set DEFAULT_ADMIN_PASSWORD")
                await session.rollback()
                raise SystemExit(1)
            if await seed_admin(session, args.admin_username, args.admin_email, password):
                logger.info("Created admin user %s", args.admin_username)

        await session.commit()
    await engine.dispose()


def main():
    parser = argparse.ArgumentParser(description="Seed default leave types and an admin account")
    parser.add_argument("--admin-username", default=settings.DEFAULT_ADMIN_USERNAME)
    parser.add_argument("--admin-email", default=settings.DEFAULT_ADMIN_EMAIL)
    parser.add_argument("--admin-password", default=None, help="Overrides DEFAULT_ADMIN_PASSWORD")
    parser.add_argument("--skip-admin", action="store_true", help="Seed leave types only")
    asyncio.run(run(parser.parse_args()))


if __name__ == "__main__":
    main()
