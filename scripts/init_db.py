from __future__ import annotations

import argparse
import os

from app.infrastructure.config import DatabaseConfig
from app.infrastructure.db import create_database_engine
from app.utils.seed import initialise_database


def build_config(args: argparse.Namespace) -> DatabaseConfig:
    return DatabaseConfig(
        backend=args.backend,
        sqlite_path=args.sqlite_path,
        postgres_host=args.postgres_host,
        postgres_port=args.postgres_port,
        postgres_user=args.postgres_user,
        postgres_password=args.postgres_password,
        postgres_database=args.postgres_database,
    )


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Create the ratings table if it does not exist")

    parser.add_argument(
        "--backend", choices=["sqlite", "postgresql"], default=os.environ.get("DB_BACKEND", "sqlite")
    )
    parser.add_argument("--sqlite-path", default=os.environ.get("DB_SQLITE_PATH", "./ratings.db"))
    parser.add_argument("--postgres-host", default=os.environ.get("DB_POSTGRES_HOST", "localhost"))
    parser.add_argument(
        "--postgres-port", type=int, default=int(os.environ.get("DB_POSTGRES_PORT") or 5432)
    )
    parser.add_argument("--postgres-user", default=os.environ.get("DB_POSTGRES_USER", "postgres"))
    parser.add_argument("--postgres-password", default=os.environ.get("DB_POSTGRES_PASSWORD", ""))
    parser.add_argument(
        "--postgres-database", default=os.environ.get("DB_POSTGRES_DATABASE", "ratings")
    )
    args = parser.parse_args(argv)

    engine = create_database_engine(build_config(args))
    if initialise_database(engine):
        print("Ratings table already exists.")
    else:
        print("Ratings table created.")


if __name__ == "__main__":
    main()
