#!/usr/bin/env python3
"""
Quiniela Management CLI

Command-line management for the Quiniela application: pools, scoring
checks, users and the database.
"""

import logging
import os

import click
from flask.cli import with_appcontext
from flask_migrate import downgrade, migrate, upgrade
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from quiniela import create_app, db
from quiniela.models import User
from quiniela.models.user import ROLE_ADMIN
from quiniela.services.exceptions import QuinielaServiceError
from quiniela.services.pool_service import get_pool_service

app = create_app()


@click.group()
def cli():
    """Quiniela Management CLI"""
    pass


# Quiniela Commands
@cli.group()
def quiniela():
    """Quiniela management commands"""
    pass


@quiniela.command("list")
@with_appcontext
def list_quinielas():
    """List all quinielas"""
    pools = get_pool_service().list_pools()

    if not pools:
        click.echo("No quinielas found.")
        return

    names = User.names_by_id()
    click.echo("Quinielas:")
    for pool in pools:
        decided = sum(1 for match in pool.matches if match.has_result)
        click.echo(
            f"  {pool.id}: {pool.name} (by {names.get(pool.created_by, pool.created_by)}) - "
            f"{decided}/{len(pool.matches)} matches decided, "
            f"{len(pool.participants)} participants, version {pool.version}"
        )


@quiniela.command("create")
@click.argument("name")
@click.argument("creator_email")
@with_appcontext
def create_quiniela(name, creator_email):
    """Create a quiniela owned by CREATOR_EMAIL"""
    creator = User.get_by_email(creator_email)
    if not creator:
        click.echo(f"❌ User '{creator_email}' not found!")
        return

    try:
        pool = get_pool_service().create_pool(name, creator.id)
        click.echo(f"✅ Created quiniela '{pool.name}' ({pool.id})")
    except QuinielaServiceError as e:
        click.echo(f"❌ {e.message}")
    except SQLAlchemyError as e:
        db.session.rollback()
        click.echo(f"❌ Database error creating quiniela: {str(e)}")
        logging.error(f"Quiniela creation failed - SQL error: {e}")


@quiniela.command()
@click.argument("pool_id", required=False)
@click.option("--all", "all_pools", is_flag=True, help="Recalculate every quiniela")
@with_appcontext
def recalculate(pool_id, all_pools):
    """Recalculate participant totals from the stored predictions"""
    service = get_pool_service()

    if all_pools:
        pool_ids = [pool.id for pool in service.list_pools()]
    elif pool_id:
        pool_ids = [pool_id]
    else:
        click.echo("❌ Give a POOL_ID or use --all")
        return

    for current_id in pool_ids:
        try:
            pool = service.calculate_results(current_id)
            click.echo(
                f"✅ {pool.name}: {len(pool.participants)} participants recalculated"
            )
        except QuinielaServiceError as e:
            click.echo(f"❌ {e.message}")
        except SQLAlchemyError as e:
            db.session.rollback()
            click.echo(f"❌ Database error recalculating {current_id}: {str(e)}")
            logging.error(f"Recalculation of {current_id} failed - SQL error: {e}")


@quiniela.command()
@with_appcontext
def check():
    """Report stored totals that differ from a fresh recalculation"""
    service = get_pool_service()
    pools = service.list_pools()

    click.echo("🔍 Checking quiniela scores")
    click.echo("=" * 40)

    issues = 0
    for pool in pools:
        for problem in service.find_inconsistencies(pool):
            issues += 1
            click.echo(
                f"⚠️  {pool.name} ({pool.id}) user {problem['user_id']}: "
                f"stored {problem['stored_points']}, expected {problem['expected_points']}"
            )
            if problem["orphaned_match_ids"]:
                click.echo(
                    f"   predictions for missing matches: "
                    f"{', '.join(problem['orphaned_match_ids'])}"
                )

    if issues:
        click.echo(f"\n❌ {issues} participants need recalculation")
        click.echo("   Run: python manage.py quiniela recalculate --all")
    else:
        click.echo(f"✅ All {len(pools)} quinielas are consistent")


# User Management Commands
@cli.group()
def user():
    """User management commands"""
    pass


@user.command()
@click.argument("name")
@click.argument("email")
@click.argument("password")
@with_appcontext
def create_admin(name, email, password):
    """Create an admin user"""
    email = email.strip().lower()
    try:
        if User.get_by_email(email):
            click.echo(f"❌ User with email '{email}' already exists!")
            return

        user = User(name=name, email=email, role=ROLE_ADMIN, is_active=True)
        user.set_password(password)

        db.session.add(user)
        db.session.commit()

        click.echo(f"✅ Created admin user '{name}' ({email})")

    except IntegrityError as e:
        db.session.rollback()
        click.echo(f"❌ User with email '{email}' already exists!")
        logging.error(f"Admin creation failed - integrity error: {e}")
    except SQLAlchemyError as e:
        db.session.rollback()
        click.echo(f"❌ Database error creating user: {str(e)}")
        logging.error(f"Admin creation failed - SQL error: {e}")


@user.command("list")
@with_appcontext
def list_users():
    """List all users"""
    users = User.query.order_by(User.created_at.desc()).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("Users:")
    for u in users:
        status = "🟢" if u.is_active else "🔴"
        role = "👑" if u.is_admin else "  "
        click.echo(f"  {status} {role} {u.name} ({u.email})")


@user.command()
@click.argument("email")
@with_appcontext
def promote(email):
    """Give a user administrator rights"""
    try:
        user = User.get_by_email(email)
        if not user:
            click.echo(f"❌ User '{email}' not found!")
            return

        user.role = ROLE_ADMIN
        db.session.commit()
        click.echo(f"✅ {user.name} is now an administrator")

    except SQLAlchemyError as e:
        db.session.rollback()
        click.echo(f"❌ Database error promoting user: {str(e)}")
        logging.error(f"Promotion of {email} failed - SQL error: {e}")


# Database Commands
@cli.group()
def db_cmd():
    """Database commands"""
    pass


@db_cmd.command()
@with_appcontext
def init_db():
    """Initialize database tables"""
    try:
        db.create_all()
        click.echo("✅ Database tables created successfully!")
    except SQLAlchemyError as e:
        click.echo(f"❌ Error initializing database: {str(e)}")
        logging.error(f"Database initialization failed: {e}")


@db_cmd.command()
@with_appcontext
def reset():
    """⚠️  DANGER: Drop and recreate all tables"""
    if not click.confirm("This will DELETE ALL DATA. Are you sure?"):
        click.echo("Cancelled.")
        return

    try:
        db.drop_all()
        db.create_all()
        click.echo("✅ Database reset successfully!")
    except SQLAlchemyError as e:
        click.echo(f"❌ Error resetting database: {str(e)}")
        logging.error(f"Database reset failed: {e}")


# Database Migration Commands
@cli.group()
def db_migrate():
    """Database migration commands"""
    pass


@db_migrate.command()
@with_appcontext
def init_migrations():
    """Initialize migrations repository"""
    if os.path.exists("migrations"):
        click.echo("❌ Migrations directory already exists!")
        return

    from flask_migrate import init as flask_migrate_init

    flask_migrate_init()
    click.echo("✅ Migrations repository initialized!")


@db_migrate.command()
@click.option("-m", "--message", required=True, help="Migration message")
@with_appcontext
def create_migration(message):
    """Create a new migration"""
    migrate(message=message)
    click.echo(f"✅ Migration created: {message}")


@db_migrate.command()
@click.option("--revision", default="head", help="Revision to upgrade to")
@with_appcontext
def apply_migrations(revision):
    """Apply migrations to database"""
    upgrade(revision=revision)
    click.echo(f"✅ Migrations applied to {revision}")


@db_migrate.command()
@click.option("--revision", required=True, help="Revision to downgrade to")
@with_appcontext
def rollback_migration(revision):
    """Rollback migrations to specific revision"""
    downgrade(revision=revision)
    click.echo(f"✅ Rolled back to {revision}")


# Info Commands
@cli.command()
@with_appcontext
def status():
    """Show application status"""
    click.echo("⚽ Quiniela Application Status")
    click.echo("=" * 40)

    try:
        db.session.execute(text("SELECT 1"))
        click.echo("✅ Database: Connected")
    except SQLAlchemyError as e:
        click.echo(f"❌ Database: Error - {str(e)}")

    storage = app.config.get("POOL_STORAGE", "database")
    click.echo(f"💾 Quiniela storage: {storage}")

    user_count = User.query.filter_by(is_active=True).count()
    click.echo(f"👥 Active Users: {user_count}")

    pools = get_pool_service().list_pools()
    matches = [match for pool in pools for match in pool.matches]
    decided = sum(1 for match in matches if match.has_result)
    click.echo(f"🏆 Quinielas: {len(pools)}")
    click.echo(f"⚽ Matches: {decided}/{len(matches)} decided")


if __name__ == "__main__":
    with app.app_context():
        cli()
