"""Operations CLI: ``clixen <command>``.

Every command runs against the database and services configured through the
usual environment variables, so it works the same from a laptop with a
``.env`` file and from inside the API container.
"""

import argparse
import json
import logging
import sys
from argparse import Namespace
from typing import Any, Callable, List, Optional

from .clients.n8n_client import N8nClientError
from .clients.supabase_client import SupabaseClientError
from .core.config import settings
from .core.logging_config import setup_logging
from .exceptions import ClixenException

logger = logging.getLogger(__name__)


def _print_json(data: Any) -> None:
    if hasattr(data, "model_dump"):
        data = data.model_dump(mode="json")
    print(json.dumps(data, indent=2, default=str))


def _session():
    from .database import SessionLocal, init_db
    init_db()
    return SessionLocal()


def _with_db(fn: Callable) -> Callable[[Namespace], int]:
    """Open a session for the command and close it afterwards."""
    def run(args: Namespace) -> int:
        db = _session()
        try:
            return fn(args, db)
        finally:
            db.close()
    return run


# -- Commands ---------------------------------------------------------------

@_with_db
def cmd_health(args: Namespace, db) -> int:
    from .services.health_service import basic_health, deep_health

    result = deep_health(db) if args.deep else basic_health(db)
    _print_json(result)
    return 0 if result["status"] == "healthy" else 1


@_with_db
def cmd_create_user(args: Namespace, db) -> int:
    from .clients import get_supabase_client
    from .services.assignment_service import AssignmentService
    from .services.workspace_service import WorkspaceService

    client = get_supabase_client()
    existing = client.find_user_by_email(args.email)
    if existing:
        print(f"User already exists: {args.email} ({existing['id']})")
        user = existing
    else:
        user = client.create_user(args.email, args.password, user_metadata={"source": "cli"})
        print(f"Created user {args.email} ({user['id']})")

    if args.no_assign:
        return 0

    assignment = AssignmentService(db).assign_user(user["id"])
    WorkspaceService(db).ensure_workspace(user["id"], email=args.email)
    print(f"Assigned {assignment.project_id} / {assignment.folder_id}")
    return 0


@_with_db
def cmd_delete_user(args: Namespace, db) -> int:
    from .clients import get_supabase_client
    from .services.assignment_service import AssignmentService

    if AssignmentService(db).release_user(args.user_id):
        print(f"Released folder of {args.user_id}")
    if get_supabase_client().delete_user(args.user_id):
        print(f"Deleted Supabase user {args.user_id}")
    else:
        print(f"Supabase user {args.user_id} not found")
    return 0


@_with_db
def cmd_assign(args: Namespace, db) -> int:
    from .services.assignment_service import AssignmentService
    from .services.workspace_service import WorkspaceService

    assignment = AssignmentService(db).assign_user(args.user_id)
    WorkspaceService(db).ensure_workspace(args.user_id)
    print(f"{args.user_id} -> {assignment.project_id} / {assignment.folder_id}")
    return 0


@_with_db
def cmd_release(args: Namespace, db) -> int:
    from .services.assignment_service import AssignmentService

    if not AssignmentService(db).release_user(args.user_id):
        print(f"{args.user_id} has no active folder")
        return 1
    print(f"Released folder of {args.user_id}")
    return 0


@_with_db
def cmd_seed_folders(args: Namespace, db) -> int:
    from .services.assignment_service import AssignmentService

    service = AssignmentService(db)
    created = service.seed_folders(args.projects, args.slots)
    print(f"Created {created} folder(s)")
    _print_json(service.capacity())
    return 0


@_with_db
def cmd_capacity(args: Namespace, db) -> int:
    from .services.assignment_service import AssignmentService

    _print_json(AssignmentService(db).capacity())
    return 0


@_with_db
def cmd_folders(args: Namespace, db) -> int:
    from .services.assignment_service import AssignmentService

    for folder in AssignmentService(db).list_folders():
        if args.status and folder.status != args.status:
            continue
        print(f"  {folder.folder_tag_name:<16} {folder.status:<9} {folder.user_id or '-'}")
    return 0


@_with_db
def cmd_sync(args: Namespace, db) -> int:
    from .clients import get_n8n_client
    from .services.sync_service import SyncService

    result = SyncService(db, get_n8n_client()).sync_all(user_id=args.user)
    _print_json(result)
    return 0 if result.status != "error" else 1


@_with_db
def cmd_cleanup(args: Namespace, db) -> int:
    from .clients import get_n8n_client
    from .services.sync_service import SyncService

    result = SyncService(db, get_n8n_client()).cleanup_inactive(max_age_hours=args.max_age_hours)
    _print_json(result)
    return 0 if not result.failed else 1


@_with_db
def cmd_cleanup_legacy(args: Namespace, db) -> int:
    from .clients import get_n8n_client
    from .services.sync_service import SyncService

    service = SyncService(db, get_n8n_client())
    for wf in service.find_legacy():
        print(f"  {wf.get('id')}  {'active  ' if wf.get('active') else 'inactive'}  {wf.get('name')}")

    result = service.cleanup_legacy(dry_run=not args.execute)
    if not args.execute:
        print(f"{result.candidates} legacy workflow(s) found. Re-run with --execute to delete them.")
        return 0
    _print_json(result)
    return 0 if not result.failed else 1


def cmd_activate(args: Namespace) -> int:
    from .clients import get_n8n_client

    client = get_n8n_client()
    if args.deactivate:
        client.deactivate_workflow(args.n8n_workflow_id)
        print(f"Deactivated {args.n8n_workflow_id}")
    else:
        client.activate_workflow(args.n8n_workflow_id)
        print(f"Activated {args.n8n_workflow_id}")
    return 0


def cmd_validate_workflow(args: Namespace) -> int:
    from .services.workflow_validator import auto_fix, validate_workflow

    with open(args.path, encoding="utf-8") as f:
        workflow = json.load(f)

    report = validate_workflow(workflow)
    if args.fix and not report.is_valid:
        workflow = auto_fix(workflow, report.errors)
        report = validate_workflow(workflow)
        with open(args.output or args.path, "w", encoding="utf-8") as f:
            json.dump(workflow, f, indent=2)
        print(f"Wrote fixed workflow to {args.output or args.path}")

    _print_json(report.to_dict())
    return 0 if report.is_valid else 1


def cmd_token(args: Namespace) -> int:
    from .core.token_factory import create_token

    secret = settings.supabase_jwt_secret or settings.jwt_secret_key
    print(create_token(
        args.user_id,
        secret,
        role=args.role,
        email=args.email,
        algorithm=settings.jwt_algorithm,
        expires_hours=args.hours,
    ))
    return 0


# -- Parser -----------------------------------------------------------------

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="clixen",
        description="Clixen operations: users, folders, n8n sync and health",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s health --deep
  %(prog)s create-user alice@example.com --password 's3cret!'
  %(prog)s cleanup-legacy            # dry run
  %(prog)s cleanup-legacy --execute
  %(prog)s validate-workflow workflow.json --fix
        """,
    )
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("health", help="Check the database and external services")
    p.add_argument("--deep", action="store_true", help="Also probe n8n, Supabase and OpenAI")
    p.set_defaults(handler=cmd_health)

    p = sub.add_parser("create-user", help="Create a confirmed Supabase user and assign a folder")
    p.add_argument("email")
    p.add_argument("--password", required=True)
    p.add_argument("--no-assign", action="store_true", help="Skip folder assignment")
    p.set_defaults(handler=cmd_create_user)

    p = sub.add_parser("delete-user", help="Release a user's folder and delete them from Supabase")
    p.add_argument("user_id")
    p.set_defaults(handler=cmd_delete_user)

    p = sub.add_parser("assign", help="Assign a user to a project folder")
    p.add_argument("user_id")
    p.set_defaults(handler=cmd_assign)

    p = sub.add_parser("release", help="Return a user's folder to the pool")
    p.add_argument("user_id")
    p.set_defaults(handler=cmd_release)

    p = sub.add_parser("seed-folders", help="Create missing folder pool rows")
    p.add_argument("--projects", type=int, default=None, help=f"Projects (default: {settings.project_count})")
    p.add_argument("--slots", type=int, default=None, help=f"Slots per project (default: {settings.slots_per_project})")
    p.set_defaults(handler=cmd_seed_folders)

    p = sub.add_parser("capacity", help="Show folder pool occupancy")
    p.set_defaults(handler=cmd_capacity)

    p = sub.add_parser("folders", help="List folder pool slots and their owners")
    p.add_argument("--status", choices=["available", "active", "inactive"], default=None)
    p.set_defaults(handler=cmd_folders)

    p = sub.add_parser("sync", help="Sync deployed workflows from n8n")
    p.add_argument("--user", default=None, help="Only this user's workflows")
    p.set_defaults(handler=cmd_sync)

    p = sub.add_parser("cleanup", help="Delete archived workflows past the grace period")
    p.add_argument("--max-age-hours", type=int, default=settings.cleanup_max_age_hours)
    p.set_defaults(handler=cmd_cleanup)

    p = sub.add_parser("cleanup-legacy", help="List or delete n8n workflows without a [USR-] prefix")
    p.add_argument("--execute", action="store_true", help="Delete instead of listing")
    p.set_defaults(handler=cmd_cleanup_legacy)

    p = sub.add_parser("activate", help="Activate (or deactivate) an n8n workflow by id")
    p.add_argument("n8n_workflow_id")
    p.add_argument("--deactivate", action="store_true")
    p.set_defaults(handler=cmd_activate)

    p = sub.add_parser("validate-workflow", help="Validate an n8n workflow JSON file")
    p.add_argument("path")
    p.add_argument("--fix", action="store_true", help="Auto-fix errors and write the result")
    p.add_argument("--output", default=None, help="Where to write the fixed workflow (default: in place)")
    p.set_defaults(handler=cmd_validate_workflow)

    p = sub.add_parser("token", help="Mint an access token for local testing")
    p.add_argument("user_id")
    p.add_argument("--email", default="")
    p.add_argument("--role", default="authenticated", choices=["authenticated", "service_role", "admin"])
    p.add_argument("--hours", type=int, default=1)
    p.set_defaults(handler=cmd_token)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    setup_logging(log_level=settings.log_level, log_format="text")

    try:
        return args.handler(args)
    except ClixenException as e:
        print(f"[Error] {e.message}", file=sys.stderr)
        return 1
    except (N8nClientError, SupabaseClientError) as e:
        print(f"[Error] {e}", file=sys.stderr)
        return 1
    except FileNotFoundError as e:
        print(f"[Error] {e}", file=sys.stderr)
        return 1
    except json.JSONDecodeError as e:
        print(f"[Error] Invalid JSON: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
