"""Command line entry point: ``python -m src.orgchart.main``.

Exit codes follow sysexits: 65 for a rejected request, 69 when the database is
unavailable, 75 when an id conflict persisted through every retry.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from typing import Any, Sequence

import asyncpg
import structlog
from dotenv import load_dotenv

from src.db.pool import close_pool, init_pool
from src.infra.logging.config import configure_logging, is_configured
from src.infra.result import DatabaseError, Err, Error, SystemError
from src.orgchart.services.department_errors import DepartmentError
from src.orgchart.services.department_service import DepartmentService

LOGGER = structlog.get_logger(__name__)

EXIT_OK = 0
EXIT_DATAERR = 65
EXIT_UNAVAILABLE = 69
EXIT_TEMPFAIL = 75


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="deptree",
        description="管理以十進位階層編碼的部門樹。",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    create = sub.add_parser("create", help="Create a department under an optional parent")
    create.add_argument("name", help="Department display name")
    create.add_argument(
        "--parent", type=int, default=None, help="Parent department id (omit for top level)"
    )

    tree = sub.add_parser("tree", help="Print a department and all of its descendants")
    tree.add_argument("root_id", type=int)

    employees = sub.add_parser(
        "employees", help="List employees of a department and its sub-departments"
    )
    employees.add_argument("department_id", type=int)
    return parser


def exit_code_for(error: Error) -> int:
    if isinstance(error, DepartmentError):
        return EXIT_TEMPFAIL if error.retryable else EXIT_DATAERR
    if isinstance(error, (DatabaseError, SystemError)):
        return EXIT_UNAVAILABLE
    return EXIT_DATAERR


def _emit(payload: Any) -> None:
    print(json.dumps(payload, ensure_ascii=False))


async def run(args: argparse.Namespace, service: DepartmentService) -> int:
    if args.command == "create":
        result: Any = await service.create_department(name=args.name, parent_id=args.parent)
    elif args.command == "tree":
        result = await service.get_subtree(root_id=args.root_id)
    else:
        result = await service.list_subtree_employees(department_id=args.department_id)

    if isinstance(result, Err):
        error = result.error
        LOGGER.warning(
            "cli.command.failed",
            command=args.command,
            error_type=type(error).__name__,
            error=str(error),
            context=error.log_safe_context(),
        )
        _emit({"error": error.to_dict()})
        return exit_code_for(error)

    value = result.value
    if isinstance(value, list):
        _emit([item.to_dict() for item in value])
    else:
        _emit(value.to_dict())
    return EXIT_OK


async def _amain(argv: Sequence[str]) -> int:
    args = build_parser().parse_args(list(argv))
    load_dotenv(override=False)

    try:
        pool = await init_pool()
    except (OSError, ValueError, asyncpg.PostgresError, asyncpg.InterfaceError) as exc:
        LOGGER.error("cli.pool.unavailable", error=str(exc))
        return EXIT_UNAVAILABLE

    try:
        return await run(args, DepartmentService(pool))
    finally:
        await close_pool()


def main(argv: Sequence[str] | None = None) -> int:
    if not is_configured():
        configure_logging()
    return asyncio.run(_amain(sys.argv[1:] if argv is None else argv))


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
