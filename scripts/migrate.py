"""
Database migration helper around Alembic.

    python scripts/migrate.py status
    python scripts/migrate.py up [steps]
    python scripts/migrate.py down [steps]      # default: 1
    python scripts/migrate.py create <name> [--autogenerate]
    python scripts/migrate.py force <version>

The database URL is built from the APP_DATABASE_* settings.  In production
a password must be set explicitly and every schema change asks for a
typed "yes" first.
"""
import argparse
import os
import sys
from pathlib import Path

from alembic import command
from alembic.config import Config

from starter_api.config import settings

ROOT = Path(__file__).resolve().parent.parent


def info(message: str) -> None:
    print(f"[INFO] {message}")


def warning(message: str) -> None:
    print(f"[WARNING] {message}", file=sys.stderr)


def error(message: str) -> None:
    print(f"[ERROR] {message}", file=sys.stderr)


def alembic_config() -> Config:
    cfg = Config(str(ROOT / "alembic.ini"))
    migration_path = Path(settings.database.migration_path)
    if not migration_path.is_absolute():
        migration_path = ROOT / migration_path
    if not migration_path.is_dir():
        error(f"Migration path does not exist: {migration_path}")
        sys.exit(1)
    cfg.set_main_option("script_location", str(migration_path))
    return cfg


def check_production_password() -> None:
    if settings.server.is_production and not os.environ.get("APP_DATABASE_PASSWORD"):
        error("Database password is required for production environment")
        error("Set APP_DATABASE_PASSWORD environment variable")
        sys.exit(1)


def confirm_production(prompt: str = "Are you sure? (yes/no): ") -> None:
    if not settings.server.is_production:
        return
    warning("You are about to run migration on PRODUCTION environment!")
    warning(f"Database: {settings.database.safe_dsn}")
    if input(prompt).strip().lower() != "yes":
        info("Migration cancelled")
        sys.exit(0)


def cmd_status(cfg: Config, args: argparse.Namespace) -> None:
    info(f"Migration status for environment: {settings.server.env}")
    info(f"Database: {settings.database.safe_dsn}")
    command.current(cfg, verbose=True)


def cmd_up(cfg: Config, args: argparse.Namespace) -> None:
    confirm_production()
    info(f"Running migrations UP for environment: {settings.server.env}")
    if args.steps:
        info(f"Running {args.steps} migration(s)")
        command.upgrade(cfg, f"+{args.steps}")
    else:
        info("Running all pending migrations")
        command.upgrade(cfg, "head")
    info("Migration completed successfully")


def cmd_down(cfg: Config, args: argparse.Namespace) -> None:
    confirm_production()
    warning(f"Running migrations DOWN for environment: {settings.server.env}")
    warning(f"This will rollback {args.steps} migration(s)")
    confirm_production("Confirm rollback in production (yes/no): ")
    command.downgrade(cfg, f"-{args.steps}")
    info("Migration rollback completed")


def cmd_create(cfg: Config, args: argparse.Namespace) -> None:
    info(f"Creating new migration: {args.name}")
    command.revision(cfg, message=args.name, autogenerate=args.autogenerate)
    info(f"Migration file created in {cfg.get_main_option('script_location')}")


def cmd_force(cfg: Config, args: argparse.Namespace) -> None:
    confirm_production()
    warning(f"Forcing migration version to: {args.version}")
    command.stamp(cfg, args.version)
    info("Migration version forced")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Run database migrations")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("status", help="Show the current revision").set_defaults(func=cmd_status)

    up = sub.add_parser("up", help="Apply pending migrations")
    up.add_argument("steps", nargs="?", type=int, help="Number of migrations (default: all)")
    up.set_defaults(func=cmd_up)

    down = sub.add_parser("down", help="Roll back migrations")
    down.add_argument("steps", nargs="?", type=int, default=1, help="Number of migrations (default: 1)")
    down.set_defaults(func=cmd_down)

    create = sub.add_parser("create", help="Create a new revision")
    create.add_argument("name")
    create.add_argument("--autogenerate", action="store_true", help="Diff models against the database")
    create.set_defaults(func=cmd_create)

    force = sub.add_parser("force", help="Mark the database as being at <version>")
    force.add_argument("version")
    force.set_defaults(func=cmd_force)
    return parser


def main(argv=None) -> None:
    args = build_parser().parse_args(argv)
    if args.command != "create":
        check_production_password()
    args.func(alembic_config(), args)


if __name__ == "__main__":
    main()
