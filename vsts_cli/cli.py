"""
VSTS CLI - Opinionated command-line interface.

This layer provides the user-facing CLI commands, using the SDK layer
for all operations. It handles:
- Argument parsing and session configuration (flags, environment, .env)
- TTY detection for human vs machine output
- Pretty formatting for human output
- JSON output for piping/automation
"""

import argparse
import dataclasses
import json
import os
import sys
from typing import Any

from dotenv import load_dotenv

from vsts_cli.core.client import NotFound, VSTSError, ValidationError
from vsts_cli.core.logging import setup_logging
from vsts_cli.core.poller import DEFAULT_INTERVAL, DEFAULT_MAX_ATTEMPTS
from vsts_cli.core.session import Session
from vsts_cli.sdk import VSTSClient

# =============================================================================
# Output Helpers
# =============================================================================


def is_tty() -> bool:
    """Check if stdout is a TTY (human) or pipe (machine)."""
    return sys.stdout.isatty()


def json_output(data: Any, pretty: bool = False) -> None:
    """Print JSON output."""
    indent = 2 if pretty or is_tty() else None
    print(json.dumps(data, indent=indent, default=str))


def error_output(error: VSTSError) -> None:
    """Print error and exit."""
    json_output(error.to_dict())
    sys.exit(1)


def success_output(data: Any) -> None:
    """Print success output."""
    json_output(data)


def table_output(
    headers: list[str],
    rows: list[list[str]],
    widths: list[int],
) -> None:
    """Print a formatted table for human output."""
    # Header
    header_line = "  ".join(h.ljust(w) for h, w in zip(headers, widths))
    print(header_line)
    print("-" * len(header_line))

    # Rows
    for row in rows:
        print("  ".join(str(v if v is not None else "")[:w].ljust(w) for v, w in zip(row, widths)))


def list_output(items: list[Any], headers: list[str], columns: list[str], widths: list[int], empty: str) -> None:
    """Print dataclass items as a table on a TTY, as JSON otherwise."""
    if not is_tty():
        success_output({"value": [dataclasses.asdict(i) for i in items], "count": len(items)})
        return
    if not items:
        print(empty)
        return
    table_output(headers, [[getattr(i, c) for c in columns] for i in items], widths)


def parse_fields(raw: str) -> dict[str, Any]:
    """Parse a JSON object of field values from an argument or stdin (-)."""
    try:
        fields = json.load(sys.stdin) if raw == "-" else json.loads(raw)
    except json.JSONDecodeError as e:
        raise ValidationError(f"Invalid JSON in --fields: {e}")
    if not isinstance(fields, dict):
        raise ValidationError("--fields must be a JSON object")
    return fields


# =============================================================================
# CLI Commands
# =============================================================================


def cmd_projects_list(client: VSTSClient, args: argparse.Namespace) -> None:
    """List projects."""
    projects = client.projects.list(name=args.name, top=args.top)
    list_output(projects, ["ID", "Name", "State"], ["id", "name", "state"], [36, 40, 16], "No projects found.")


def cmd_projects_get(client: VSTSClient, args: argparse.Namespace) -> None:
    """Get a project by name."""
    project = client.projects.get(args.name)
    if project is None:
        raise NotFound(f"Project '{args.name}' not found")
    success_output(dataclasses.asdict(project))


def cmd_projects_create(client: VSTSClient, args: argparse.Namespace) -> None:
    """Create a project."""
    result = client.projects.create(
        args.name,
        description=args.description,
        source_control=args.source_control,
        process_name=args.process,
        wait=args.wait,
    )
    message = f"Project {args.name} created" if args.wait else f"Project {args.name} queued for creation"
    success_output({"operation": result, "message": message})


def cmd_projects_delete(client: VSTSClient, args: argparse.Namespace) -> None:
    """Delete a project by name."""
    client.projects.delete(args.name, wait=args.wait)
    success_output({"success": True, "message": f"Project {args.name} deleted"})


def cmd_projects_wait(client: VSTSClient, args: argparse.Namespace) -> None:
    """Wait for a project to be created or deleted."""
    exists = not args.absent
    client.projects.wait(args.name, exists=exists, attempts=args.attempts, interval=args.interval)
    state = "exists" if exists else "is gone"
    success_output({"success": True, "message": f"Project {args.name} {state}"})


def cmd_processes_list(client: VSTSClient, _args: argparse.Namespace) -> None:
    """List process templates."""
    processes = client.processes.list()
    list_output(
        processes,
        ["ID", "Name", "Default"],
        ["id", "name", "is_default"],
        [36, 30, 8],
        "No processes found.",
    )


def cmd_workitems_get(client: VSTSClient, args: argparse.Namespace) -> None:
    """Get work items by id."""
    items = client.work_items.get(args.ids)
    if is_tty():
        if not items:
            print("No work items found.")
            return
        table_output(
            ["ID", "Type", "State", "Title"],
            [[w.id, w.work_item_type, w.state, w.title] for w in items],
            [8, 14, 12, 50],
        )
    else:
        success_output({"value": [dataclasses.asdict(w) for w in items], "count": len(items)})


def cmd_workitems_create(client: VSTSClient, args: argparse.Namespace) -> None:
    """Create a work item."""
    fields = parse_fields(args.fields) if args.fields else {}
    if args.title:
        fields["System.Title"] = args.title
    if not fields:
        raise ValidationError("Provide --title or --fields")

    item = client.work_items.create(args.project, args.type, fields)
    success_output({"id": item.id, "url": item.url, "message": "Work item created"})


def cmd_workitems_update(client: VSTSClient, args: argparse.Namespace) -> None:
    """Update fields on a work item."""
    item = client.work_items.update(args.id, parse_fields(args.fields))
    success_output({"id": item.id, "rev": item.rev, "message": "Work item updated"})


def cmd_queries_list(client: VSTSClient, args: argparse.Namespace) -> None:
    """List saved queries."""
    queries = client.queries.list(args.project, folder_path=args.folder)
    list_output(
        queries,
        ["ID", "Folder", "Name"],
        ["id", "folder_path", "name"],
        [36, 30, 40],
        "No queries found.",
    )


def cmd_queries_create(client: VSTSClient, args: argparse.Namespace) -> None:
    """Create a saved query."""
    query = client.queries.create(args.project, args.name, args.wiql, folder_path=args.folder)
    success_output({"id": query.id, "path": query.path, "message": "Query created"})


def cmd_queries_delete(client: VSTSClient, args: argparse.Namespace) -> None:
    """Delete a saved query."""
    client.queries.delete(args.project, args.query_id)
    success_output({"success": True, "message": f"Query {args.query_id} deleted"})


def cmd_repos_list(client: VSTSClient, args: argparse.Namespace) -> None:
    """List Git repositories."""
    repos = client.repositories.list(args.project)
    list_output(
        repos,
        ["ID", "Name", "Project"],
        ["id", "name", "project_name"],
        [36, 40, 30],
        "No repositories found.",
    )


def cmd_repos_create(client: VSTSClient, args: argparse.Namespace) -> None:
    """Create a Git repository."""
    repo = client.repositories.create(args.project, args.name)
    success_output({"id": repo.id, "remote_url": repo.remote_url, "message": "Repository created"})


def cmd_repos_delete(client: VSTSClient, args: argparse.Namespace) -> None:
    """Delete a Git repository."""
    client.repositories.delete(project=args.project, name=args.name, repository_id=args.id)
    success_output({"success": True, "message": f"Repository {args.name or args.id} deleted"})


def cmd_policies_list(client: VSTSClient, args: argparse.Namespace) -> None:
    """List branch policies."""
    policies = client.policies.list(args.project)
    list_output(
        policies,
        ["ID", "Type", "Enabled", "Blocking"],
        ["id", "type_name", "is_enabled", "is_blocking"],
        [8, 40, 8, 8],
        "No policies found.",
    )


def cmd_policies_create(client: VSTSClient, args: argparse.Namespace) -> None:
    """Create a minimum-reviewers policy."""
    policy = client.policies.create_minimum_reviewers(
        args.project,
        args.minimum_reviewers,
        args.branch,
        repository_id=args.repository_id,
        blocking=args.blocking,
    )
    success_output({"id": policy.id, "message": "Policy created"})


def cmd_builds_definitions(client: VSTSClient, args: argparse.Namespace) -> None:
    """List build definitions."""
    definitions = client.build_definitions.list(args.project, name=args.name)
    list_output(
        definitions,
        ["ID", "Name", "Path"],
        ["id", "name", "path"],
        [8, 40, 30],
        "No build definitions found.",
    )


# =============================================================================
# Parser
# =============================================================================


def create_parser() -> argparse.ArgumentParser:  # noqa: PLR0915
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="vsts",
        description="VSTS CLI - Command-line interface for the VSTS REST API",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Configuration:
  Flags override VSTS_ACCOUNT, VSTS_USER, VSTS_TOKEN, VSTS_COLLECTION,
  VSTS_SERVER and VSTS_SCHEME (a .env file in the working directory is loaded).

Examples:
  vsts projects create Demo --wait
  vsts repos create Demo service
  vsts policies create Demo 2 --branch master
  vsts projects list | jq '.value[].name'
""",
    )
    parser.add_argument("--account", "-a", help="Account name (overrides VSTS_ACCOUNT)")
    parser.add_argument("--user", "-u", help="User name (overrides VSTS_USER)")
    parser.add_argument("--token", "-t", help="Personal access token (overrides VSTS_TOKEN)")
    parser.add_argument("--collection", help="Collection (overrides VSTS_COLLECTION)")
    parser.add_argument("--server", help="Server host when no account is set (overrides VSTS_SERVER)")
    parser.add_argument("--scheme", choices=["http", "https"], help="URI scheme (overrides VSTS_SCHEME)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Log requests to stderr")
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # ========== Projects ==========
    projects = subparsers.add_parser("projects", help="List and manage projects")
    projects.set_defaults(func=lambda _c, _a: projects.print_help())
    projects_sub = projects.add_subparsers(dest="subcommand")

    p_list = projects_sub.add_parser("list", help="List projects")
    p_list.add_argument("--name", "-n", help="Name pattern (wildcards allowed)")
    p_list.add_argument("--top", type=int, help="Max results")
    p_list.set_defaults(func=cmd_projects_list)

    p_get = projects_sub.add_parser("get", help="Get project details")
    p_get.add_argument("name", help="Project name")
    p_get.set_defaults(func=cmd_projects_get)

    p_create = projects_sub.add_parser("create", help="Create a project")
    p_create.add_argument("name", help="Project name")
    p_create.add_argument("--description", "-d", default="", help="Project description")
    p_create.add_argument("--source-control", default="Git", choices=["Git", "Tfvc"], help="Version control")
    p_create.add_argument("--process", default="Agile", help="Process template name")
    p_create.add_argument("--wait", action="store_true", help="Wait until the project exists")
    p_create.set_defaults(func=cmd_projects_create)

    p_delete = projects_sub.add_parser("delete", help="Delete a project")
    p_delete.add_argument("name", help="Project name")
    p_delete.add_argument("--wait", action="store_true", help="Wait until the project is gone")
    p_delete.set_defaults(func=cmd_projects_delete)

    p_wait = projects_sub.add_parser("wait", help="Wait for a project to appear or disappear")
    p_wait.add_argument("name", help="Project name")
    p_wait.add_argument("--absent", action="store_true", help="Wait for the project to be deleted")
    p_wait.add_argument("--attempts", type=int, default=DEFAULT_MAX_ATTEMPTS, help="Retries after the first check")
    p_wait.add_argument("--interval", type=float, default=DEFAULT_INTERVAL, help="Seconds between checks")
    p_wait.set_defaults(func=cmd_projects_wait)

    # ========== Processes ==========
    processes = subparsers.add_parser("processes", help="List process templates")
    processes.set_defaults(func=lambda _c, _a: processes.print_help())
    processes_sub = processes.add_subparsers(dest="subcommand")

    pr_list = processes_sub.add_parser("list", help="List process templates")
    pr_list.set_defaults(func=cmd_processes_list)

    # ========== Work Items ==========
    workitems = subparsers.add_parser("workitems", help="Manage work items")
    workitems.set_defaults(func=lambda _c, _a: workitems.print_help())
    workitems_sub = workitems.add_subparsers(dest="subcommand")

    w_get = workitems_sub.add_parser("get", help="Get work items")
    w_get.add_argument("ids", nargs="+", type=int, help="Work item IDs")
    w_get.set_defaults(func=cmd_workitems_get)

    w_create = workitems_sub.add_parser("create", help="Create a work item")
    w_create.add_argument("project", help="Project name")
    w_create.add_argument("type", help="Work item type (Bug, Task, User Story, ...)")
    w_create.add_argument("--title", help="Work item title")
    w_create.add_argument("--fields", "-f", help="JSON object of field values (or - for stdin)")
    w_create.set_defaults(func=cmd_workitems_create)

    w_update = workitems_sub.add_parser("update", help="Update work item fields")
    w_update.add_argument("id", type=int, help="Work item ID")
    w_update.add_argument("fields", help="JSON object of field values (or - for stdin)")
    w_update.set_defaults(func=cmd_workitems_update)

    # ========== Queries ==========
    queries = subparsers.add_parser("queries", help="Manage saved work item queries")
    queries.set_defaults(func=lambda _c, _a: queries.print_help())
    queries_sub = queries.add_subparsers(dest="subcommand")

    q_list = queries_sub.add_parser("list", help="List queries")
    q_list.add_argument("project", help="Project name")
    q_list.add_argument("--folder", help="Only queries in this folder")
    q_list.set_defaults(func=cmd_queries_list)

    q_create = queries_sub.add_parser("create", help="Create a query")
    q_create.add_argument("project", help="Project name")
    q_create.add_argument("name", help="Query name")
    q_create.add_argument("wiql", help="WIQL text")
    q_create.add_argument("--folder", default="Shared Queries", help="Parent folder")
    q_create.set_defaults(func=cmd_queries_create)

    q_delete = queries_sub.add_parser("delete", help="Delete a query")
    q_delete.add_argument("project", help="Project name")
    q_delete.add_argument("query_id", help="Query ID")
    q_delete.set_defaults(func=cmd_queries_delete)

    # ========== Repositories ==========
    repos = subparsers.add_parser("repos", help="Manage Git repositories")
    repos.set_defaults(func=lambda _c, _a: repos.print_help())
    repos_sub = repos.add_subparsers(dest="subcommand")

    r_list = repos_sub.add_parser("list", help="List repositories")
    r_list.add_argument("project", nargs="?", help="Project name (all projects if omitted)")
    r_list.set_defaults(func=cmd_repos_list)

    r_create = repos_sub.add_parser("create", help="Create a repository")
    r_create.add_argument("project", help="Project name")
    r_create.add_argument("name", help="Repository name")
    r_create.set_defaults(func=cmd_repos_create)

    r_delete = repos_sub.add_parser("delete", help="Delete a repository")
    r_delete.add_argument("project", help="Project name")
    r_delete.add_argument("name", nargs="?", help="Repository name")
    r_delete.add_argument("--id", help="Repository ID (instead of name)")
    r_delete.set_defaults(func=cmd_repos_delete)

    # ========== Policies ==========
    policies = subparsers.add_parser("policies", help="Manage branch policies")
    policies.set_defaults(func=lambda _c, _a: policies.print_help())
    policies_sub = policies.add_subparsers(dest="subcommand")

    po_list = policies_sub.add_parser("list", help="List policies")
    po_list.add_argument("project", help="Project name")
    po_list.set_defaults(func=cmd_policies_list)

    po_create = policies_sub.add_parser("create", help="Require a minimum number of reviewers")
    po_create.add_argument("project", help="Project name")
    po_create.add_argument("minimum_reviewers", type=int, help="Approvals required")
    po_create.add_argument("--branch", "-b", action="append", required=True, help="Branch name (repeatable)")
    po_create.add_argument("--repository-id", help="Limit to one repository")
    po_create.add_argument("--blocking", action="store_true", help="Block completion when unmet")
    po_create.set_defaults(func=cmd_policies_create)

    # ========== Builds ==========
    builds = subparsers.add_parser("builds", help="Inspect builds")
    builds.set_defaults(func=lambda _c, _a: builds.print_help())
    builds_sub = builds.add_subparsers(dest="subcommand")

    b_defs = builds_sub.add_parser("definitions", help="List build definitions")
    b_defs.add_argument("project", help="Project name")
    b_defs.add_argument("--name", "-n", help="Definition name")
    b_defs.set_defaults(func=cmd_builds_definitions)

    return parser


def session_from_args(args: argparse.Namespace) -> Session:
    """Build the session from flags, falling back to the environment."""
    overrides = {
        "VSTS_ACCOUNT": args.account,
        "VSTS_USER": args.user,
        "VSTS_TOKEN": args.token,
        "VSTS_COLLECTION": args.collection,
        "VSTS_SERVER": args.server,
        "VSTS_SCHEME": args.scheme,
    }
    environ = dict(os.environ)
    environ.update({k: v for k, v in overrides.items() if v is not None})
    return Session.from_env(environ)


def main(argv: list[str] | None = None) -> None:
    """Main CLI entry point."""
    load_dotenv()

    parser = create_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(0)

    if args.verbose:
        setup_logging("DEBUG")

    if not args.subcommand:
        args.func(None, args)
        return

    try:
        client = VSTSClient.from_session(session_from_args(args))
        args.func(client, args)
    except VSTSError as e:
        error_output(e)


if __name__ == "__main__":
    main()
