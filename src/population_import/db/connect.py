from __future__ import annotations

from typing import Optional

import psycopg
from psycopg import Connection

from population_import.config import get_database_url


def connect(database_url: Optional[str] = None, *, autocommit: bool = False) -> Connection:
    """
    Return a psycopg connection.

    - Uses `POPULATION_DSN`, if `database_url` is not provided.
    - Leaves autocommit OFF by default (commits explicitly managed elsewhere).
      Imports pass `autocommit=True`: `PopulationWriter` issues its own
      `BEGIN`/`SAVEPOINT`/`COMMIT`.
    """
    url = database_url or get_database_url()
    return psycopg.connect(url, autocommit=autocommit)
