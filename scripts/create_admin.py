#!/usr/bin/env python3
"""
Admin utility for AI Job Master.
Creates admin users, seeds the per-plan usage limits and resets the monthly
usage counters.
"""

import sys
import asyncio
import logging
from pathlib import Path

import click
from sqlalchemy import select

# Add the backend directory to the Python path
sys.path.append(str(Path(__file__).parent.parent / "backend"))

from app.core.database import close_db, get_db_session, init_db, utcnow
from app.core.logging import setup_logging
from app.core.security import get_password_hash, validate_password_strength
from app.models.user import User, UserType
from app.services.tracking import reset_monthly_counters, seed_usage_limits

logger = logging.getLogger(__name__)


class AdminUserManager:
    """Manager for creating and managing admin users."""

    async def __aenter__(self):
        await init_db()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await close_db()

    async def get_user(self, session, email: str):
        result = await session.execute(select(User).where(User.email == email.strip().lower()))
        return result.scalar_one_or_none()

    async def create_admin_user(self, email: str, password: str, full_name: str = None, force: bool = False) -> User:
        """Create a verified ADMIN account, or promote and reset an existing one with ``force``."""
        password_error = validate_password_strength(password)
        if password_error:
            raise ValueError(password_error)

        async with get_db_session() as session:
            user = await self.get_user(session, email)
            if user and not force:
                raise ValueError(f"User {email} already exists (use --force to overwrite)")

            if user is None:
                user = User(email=email.strip().lower(), monthly_reset_date=utcnow())
                session.add(user)

            user.full_name = full_name or user.full_name
            user.hashed_password = get_password_hash(password)
            user.user_type = UserType.ADMIN
            user.is_active = True
            user.email_verified = True
            user.email_verified_at = utcnow()
            await session.flush()

            logger.info(f"Admin user ready: {user.email}")
            return user

    async def set_user_type(self, email: str, user_type: UserType) -> None:
        async with get_db_session() as session:
            user = await self.get_user(session, email)
            if user is None:
                raise ValueError(f"User {email} not found")
            user.user_type = user_type

    async def list_admin_users(self) -> list:
        async with get_db_session() as session:
            result = await session.execute(
                select(User).where(User.user_type == UserType.ADMIN).order_by(User.created_at)
            )
            return list(result.scalars().all())

    async def seed_limits(self) -> int:
        async with get_db_session() as session:
            return await seed_usage_limits(session)

    async def reset_counters(self) -> int:
        async with get_db_session() as session:
            return await reset_monthly_counters(session)


def _run(coro_factory):
    """Run a manager coroutine, exiting non-zero with the error on failure."""
    async def _main():
        async with AdminUserManager() as manager:
            return await coro_factory(manager)

    try:
        return asyncio.run(_main())
    except Exception as e:
        click.echo(f"\n❌ {e}", err=True)
        sys.exit(1)


@click.group()
def cli():
    """AI Job Master admin utilities."""
    setup_logging()


@cli.command()
@click.option('--email', '-e', prompt=True, help='Admin email address')
@click.option('--full-name', '-n', default=None, help='Full name (optional)')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True,
              help='Admin password')
@click.option('--force', is_flag=True,
              help='Overwrite an existing user with the same email')
def create(email: str, full_name: str, password: str, force: bool):
    """Create an admin user."""
    user = _run(lambda manager: manager.create_admin_user(email, password, full_name, force))
    click.echo(f"\n✅ Admin user created: {user.email}")


@cli.command()
@click.option('--email', '-e', prompt=True, help='User email address')
def promote(email: str):
    """Promote existing user to admin."""
    _run(lambda manager: manager.set_user_type(email, UserType.ADMIN))
    click.echo(f"\n✅ User {email} promoted to admin successfully")


@cli.command()
@click.option('--email', '-e', prompt=True, help='Admin email address')
@click.option('--to', 'user_type', type=click.Choice(['FREE', 'PLUS']), default='FREE',
              help='Plan to move the user to')
def revoke(email: str, user_type: str):
    """Revoke admin privileges from user."""
    _run(lambda manager: manager.set_user_type(email, UserType(user_type)))
    click.echo(f"\n✅ Admin privileges revoked for {email} (now {user_type})")


@cli.command()
def list_admins():
    """List all admin users."""
    users = _run(lambda manager: manager.list_admin_users())

    if not users:
        click.echo("\n📝 No admin users found")
        return

    click.echo(f"\n📋 Admin Users ({len(users)} found):")
    click.echo("-" * 80)
    click.echo(f"{'ID':<38} {'EMAIL':<30} {'CREATED':<12}")
    click.echo("-" * 80)
    for user in users:
        created = user.created_at.strftime("%Y-%m-%d") if user.created_at else "N/A"
        click.echo(f"{user.id:<38} {user.email:<30} {created:<12}")


@cli.command()
def seed_limits():
    """Create the default usage limit rows for each plan."""
    created = _run(lambda manager: manager.seed_limits())
    click.echo(f"\n✅ Seeded {created} usage limit rows")


@cli.command()
def reset_counters():
    """Reset monthly counters for users whose 30-day period has ended."""
    reset = _run(lambda manager: manager.reset_counters())
    click.echo(f"\n✅ Reset monthly counters for {reset} users")


if __name__ == "__main__":
    cli()
