from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path

import psycopg

from population_import.config import ImportSettings
from population_import.db.connect import connect
from population_import.db.initialize import db_init
from population_import.db.population_writer import PopulationWriter
from population_import.ingest.errors import ImportFailure
from population_import.ingest.response import ImportResponse, failure_response, handle_upload
from population_import.ingest.upload import discard_upload, stage_file


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def main(argv: list[str] | None = None) -> int:
    """
    A CLI for importing population CSV files into a Postgres database.

    The `cmd` options are:
    ## import:
    Will stage a copy of the file, validate every row and persist the valid ones
    in one transaction.
    - `--input` as the path to the data,
    - `--media-type` as the declared type (defaults to none, so the `.csv` name decides)
    - `--json` prints the full response document instead of the one-line summary

    Exit code is 0 when the import completed (even with rejected rows), 1 otherwise.

    ### Example import usage:
    - `pipeline import --input data/sample/population.csv`

    ## db:
    Database controlling commands, includes DB initialization functionality.
    - `init` is the command to reinitialize the DB
    - `--sql` is an optional pointer to which dir contains the SQL file(s) you want to use to reinitialize.
    """
    p = argparse.ArgumentParser(prog="pipeline")
    p.add_argument("--log-level", default=None, help="Logging level (default: POPULATION_LOG_LEVEL or INFO).")
    sub = p.add_subparsers(dest="cmd", required=True)

    # import cmd
    imp = sub.add_parser("import", help="Import a population CSV file (with a per-row ledger).")
    imp.add_argument("--input", required=True, help="Path to input CSV file.")
    imp.add_argument("--media-type", default=None, help="Declared media type of the upload, e.g. text/csv.")
    imp.add_argument("--json", action="store_true", help="Print the full response document.")

    # db cmd
    db = sub.add_parser("db", help="Database utilities.")
    db_sub = db.add_subparsers(dest="db_cmd", required=True)

    db_init_p = db_sub.add_parser("init", help="Initialize DB schema from SQL file(s).")
    db_init_p.add_argument("--sql", default="sql", help="Path to schema SQL file OR a directory of `.sql` files.")

    args = p.parse_args(argv)

    settings = ImportSettings.from_env()
    _configure_logging(args.log_level or settings.log_level)

    if args.cmd == "import":
        input_path = Path(args.input)
        if not input_path.is_file():
            print(f"input file not found: {input_path}")
            return 1

        try:
            upload = stage_file(
                input_path,
                media_type=args.media_type,
                tmp_dir=settings.tmp_dir,
                max_bytes=settings.max_upload_bytes,
            )
        except ImportFailure as e:
            response = failure_response(e)
        else:
            try:
                conn = connect(settings.database_url, autocommit=True)
            except psycopg.OperationalError as e:
                # connection never opened: no transaction, no rows touched.
                response = ImportResponse(status_code=500, body={"message": "Server Error", "error": str(e)})
            else:
                try:
                    response = handle_upload(upload, PopulationWriter(conn), policy=settings.policy)
                finally:
                    # close, never commit: the writer ends its own transactions.
                    conn.close()
            finally:
                discard_upload(upload)

        if args.json:
            print(json.dumps(response.body, indent=2, ensure_ascii=False))
        elif "summary" in response.body:
            s = response.body["summary"]
            print(f"{input_path.name}: status={response.status_code} total={s['total']} success={s['success']} failed={s['failed']}")
        else:
            print(f"{input_path.name}: status={response.status_code} {response.body['message']}")
        return 0 if response.status_code == 200 else 1

    if args.cmd == "db" and args.db_cmd == "init":
        db_init(sql_path=Path(args.sql), database_url=settings.database_url)
        print(f"Initialized schema from {args.sql}")
        return 0

    return 2
