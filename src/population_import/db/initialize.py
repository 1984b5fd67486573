from __future__ import annotations

from pathlib import Path
from typing import Optional

import psycopg

from population_import.db.connect import connect


def _run_sql_file(conn: psycopg.Connection, sql_path: Path) -> None:
    """Read and execute a `.sql` file, surfacing the failing statement."""
    sql = sql_path.read_text(encoding="utf-8")

    # split on semicolons so a failure can name its statement.
    statements = [s.strip() for s in sql.split(";") if s.strip()]

    with conn.cursor() as cur:
        for i, stmt in enumerate(statements, 1):
            try:
                cur.execute(stmt)
            except psycopg.Error as e:
                raise RuntimeError(
                    f"DB init failed in {sql_path} on statement #{i}\n"
                    f"Postgres raised with: {e}\n"
                    f"--- statement ---\n{stmt}\n--- end ---\n"
                ) from e
    conn.commit()


def sql_files(sql_path: Path) -> list[Path]:
    """`*.sql` files under a dir in ASC order, or the single file given."""
    if sql_path.is_dir():
        return sorted(sql_path.glob("*.sql"))
    return [sql_path]


def db_init(*, sql_path: Path, database_url: Optional[str] = None) -> list[Path]:
    """
    Read a provided SQL init path to initialize (or re-initialize) this DB.

    - If `sql_path` is a dir, run all `*.sql` files in ASC order.
    - If `sql_path` is just one file, it will run just that file.

    Returns the files that were run.
    """
    files = sql_files(sql_path)
    with connect(database_url) as conn:
        for p in files:
            _run_sql_file(conn, p)
    return files
