"""
VSTS SDK - High-level client with resource operations.

This layer provides a clean, typed interface for common VSTS operations.
Each operation supplies a path, verb, query and body to the core invoker and
projects the response into dataclasses.
"""

import builtins
import fnmatch
from collections.abc import Iterable
from typing import Any

from vsts_cli.core.client import DEFAULT_TIMEOUT, PLATFORM_DOMAIN, EndpointInvoker, NotFound, ValidationError
from vsts_cli.core.logging import get_logger
from vsts_cli.core.poller import DEFAULT_INTERVAL, DEFAULT_MAX_ATTEMPTS, wait_for
from vsts_cli.core.session import DEFAULT_COLLECTION, Scheme, Session
from vsts_cli.core.types import (
    BuildDefinition,
    Policy,
    Process,
    Project,
    Repository,
    WorkItem,
    WorkItemQuery,
    flatten_queries,
    unwrap_list,
)

logger = get_logger(__name__)

QUERY_API_VERSION = "2.2"
POLICY_API_VERSION = "2.0-preview.1"
BUILD_API_VERSION = "2.0"

MINIMUM_REVIEWERS_POLICY_TYPE = "fa4e907d-c16b-4a4c-9dfa-4906e5d171dd"

# Largest page the projects endpoint returns for one request
PROJECT_PAGE_SIZE = 100


class VSTSClient:
    """
    High-level VSTS client with typed methods.

    Example:
        client = VSTSClient.from_credentials("myaccount", "me", "<token>")

        client.projects.create("Demo", wait=True)
        repo = client.repositories.create("Demo", "service")
        client.policies.create_minimum_reviewers("Demo", 2, ["master"], repository_id=repo.id)
        client.projects.delete("Demo", wait=True)

    """

    def __init__(self, session: Session, timeout: float = DEFAULT_TIMEOUT):
        """
        Initialize the client.

        Args:
            session: Connection/auth context used for every request
            timeout: Request timeout in seconds

        """
        self._invoker = EndpointInvoker(session, timeout=timeout)

        # Sub-clients for different resources
        self.processes = ProcessOperations(self._invoker)
        self.projects = ProjectOperations(self._invoker, self.processes)
        self.work_items = WorkItemOperations(self._invoker)
        self.queries = QueryOperations(self._invoker)
        self.repositories = RepositoryOperations(self._invoker, self.projects)
        self.policies = PolicyOperations(self._invoker)
        self.build_definitions = BuildDefinitionOperations(self._invoker)

    @classmethod
    def from_session(cls, session: Session, timeout: float = DEFAULT_TIMEOUT) -> "VSTSClient":
        """Create a client for an existing session."""
        return cls(session, timeout=timeout)

    @classmethod
    def from_credentials(
        cls,
        account_name: str | None,
        user: str,
        token: str,
        collection: str = DEFAULT_COLLECTION,
        server: str = PLATFORM_DOMAIN,
        scheme: Scheme | str = Scheme.HTTPS,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> "VSTSClient":
        """Create a client from raw credentials."""
        session = Session.from_credentials(
            account_name,
            user,
            token,
            collection=collection,
            server=server,
            scheme=scheme,
        )
        return cls(session, timeout=timeout)

    @classmethod
    def from_env(cls, timeout: float = DEFAULT_TIMEOUT) -> "VSTSClient":
        """Create a client from VSTS_* environment variables."""
        return cls(Session.from_env(), timeout=timeout)

    @property
    def session(self) -> Session:
        """The session every request is made with."""
        return self._invoker.session


# =============================================================================
# Process Operations
# =============================================================================


class ProcessOperations:
    """Operations for process templates."""

    def __init__(self, invoker: EndpointInvoker):
        self._invoke = invoker

    def list(self) -> list[Process]:
        """List the process templates available to the account."""
        result = self._invoke("process/processes")
        return [Process.from_dict(p) for p in unwrap_list(result)]

    def get(self, name: str) -> Process | None:
        """Get a process template by name (case-insensitive)."""
        for process in self.list():
            if process.name.lower() == name.lower():
                return process
        return None


# =============================================================================
# Project Operations
# =============================================================================


class ProjectOperations:
    """Operations for managing team projects."""

    def __init__(self, invoker: EndpointInvoker, processes: ProcessOperations):
        self._invoke = invoker
        self._processes = processes

    def list(self, name: str | None = None, top: int | None = None) -> builtins.list[Project]:
        """
        List projects in the collection.

        Pages of up to 100 projects are fetched with $top/$skip until a short
        page comes back or ``top`` is reached.

        Args:
            name: Optional name pattern; ``*`` and ``?`` wildcards, case-insensitive
            top: Maximum number of projects to return

        Returns:
            List of Projects

        """
        projects: builtins.list[Project] = []
        while top is None or len(projects) < top:
            page_size = PROJECT_PAGE_SIZE if top is None else min(PROJECT_PAGE_SIZE, top - len(projects))
            result = self._invoke("projects", query={"$top": page_size, "$skip": len(projects) or None})
            page = [Project.from_dict(p) for p in unwrap_list(result)]
            projects.extend(page)
            if len(page) < page_size:
                break

        if name:
            pattern = name.lower()
            projects = [p for p in projects if fnmatch.fnmatchcase(p.name.lower(), pattern)]
        return projects

    def get(self, name: str) -> Project | None:
        """
        Get a project by exact name.

        Returns:
            The Project, or None if there is no project with that name

        """
        for project in self.list():
            if project.name.lower() == name.lower():
                return project
        return None

    def create(
        self,
        name: str,
        description: str = "",
        source_control: str = "Git",
        process_name: str = "Agile",
        process_id: str | None = None,
        wait: bool = False,
    ) -> dict[str, Any]:
        """
        Create a team project.

        Project creation is asynchronous on the server; pass ``wait=True`` to
        block until the project is visible.

        Args:
            name: Project name
            description: Project description
            source_control: Version control type (Git or Tfvc)
            process_name: Process template name, used when process_id is not given
            process_id: Process template id
            wait: Wait for the project to exist before returning

        Returns:
            The queued operation reference

        Raises:
            NotFound: If the process template does not exist

        """
        if source_control not in ("Git", "Tfvc"):
            raise ValidationError(
                f"Unsupported source control type: {source_control}",
                details={"supported": ["Git", "Tfvc"]},
            )

        if process_id is None:
            process = self._processes.get(process_name)
            if process is None:
                raise NotFound(f"Process template '{process_name}' not found")
            process_id = process.id

        body = {
            "name": name,
            "description": description,
            "capabilities": {
                "versioncontrol": {"sourceControlType": source_control},
                "processTemplate": {"templateTypeId": process_id},
            },
        }
        result = self._invoke("projects", method="POST", body=body)
        logger.info(f"Queued creation of project {name}")

        if wait:
            self.wait(name, exists=True)
        return result or {}

    def delete(self, name: str, wait: bool = False) -> bool:
        """
        Delete a team project by name.

        Args:
            name: Project name
            wait: Wait for the project to disappear before returning

        Returns:
            True on success

        Raises:
            NotFound: If no project has that name (nothing is deleted)

        """
        project = self.get(name)
        if project is None:
            raise NotFound(f"Project '{name}' not found")

        self._invoke(f"projects/{project.id}", method="DELETE")
        logger.info(f"Queued deletion of project {name} ({project.id})")

        if wait:
            self.wait(name, exists=False)
        return True

    def wait(
        self,
        name: str,
        exists: bool = True,
        attempts: int = DEFAULT_MAX_ATTEMPTS,
        interval: float = DEFAULT_INTERVAL,
    ) -> Project | None:
        """
        Wait for a project to be created (exists=True) or deleted (exists=False).

        Raises:
            TimeoutExceeded: If the project does not reach the state in time

        """
        action = "created" if exists else "deleted"
        return wait_for(
            lambda: self.get(name),
            want_present=exists,
            max_attempts=attempts,
            interval=interval,
            description=f"project '{name}' to be {action}",
        )


# =============================================================================
# Work Item Operations
# =============================================================================


def field_patch(fields: dict[str, Any]) -> list[dict[str, Any]]:
    """Build a JSON-Patch document setting each field."""
    return [{"op": "add", "path": f"/fields/{name}", "value": value} for name, value in fields.items()]


class WorkItemOperations:
    """Operations for work items."""

    def __init__(self, invoker: EndpointInvoker):
        self._invoke = invoker

    def get(self, ids: int | str | Iterable[int | str]) -> list[WorkItem]:
        """
        Get work items by id.

        Args:
            ids: A single id or several ids

        Returns:
            List of WorkItems

        """
        if isinstance(ids, (int, str)):
            ids = [ids]
        id_list = ",".join(str(i) for i in ids)
        if not id_list:
            raise ValidationError("At least one work item id is required")

        result = self._invoke("wit/workitems", query={"ids": id_list})
        return [WorkItem.from_dict(w) for w in unwrap_list(result)]

    def create(self, project: str, work_item_type: str, fields: dict[str, Any]) -> WorkItem:
        """
        Create a work item.

        Args:
            project: Project name
            work_item_type: Work item type (Bug, Task, User Story, ...)
            fields: Field reference names to values (e.g. System.Title)

        Returns:
            Created WorkItem

        """
        if not fields:
            raise ValidationError("At least one field is required")
        result = self._invoke(
            f"wit/workitems/${work_item_type}",
            project=project,
            method="PATCH",
            body=field_patch(fields),
        )
        return WorkItem.from_dict(result)

    def update(self, work_item_id: int, fields: dict[str, Any]) -> WorkItem:
        """Set field values on an existing work item."""
        if not fields:
            raise ValidationError("At least one field is required")
        result = self._invoke(
            f"wit/workitems/{work_item_id}",
            method="PATCH",
            body=field_patch(fields),
        )
        return WorkItem.from_dict(result)


# =============================================================================
# Work Item Query Operations
# =============================================================================


def normalize_folder(folder_path: str) -> str:
    """Use forward slashes and drop surrounding separators."""
    return folder_path.replace("\\", "/").strip("/")


class QueryOperations:
    """Operations for saved work item queries."""

    def __init__(self, invoker: EndpointInvoker):
        self._invoke = invoker

    def list(self, project: str, folder_path: str | None = None) -> builtins.list[WorkItemQuery]:
        """
        List saved queries in a project.

        Args:
            project: Project name
            folder_path: Only return queries directly in this folder

        Returns:
            List of WorkItemQueries

        """
        result = self._invoke(
            "wit/queries",
            project=project,
            query={"$depth": 1},
            api_version=QUERY_API_VERSION,
        )
        queries = flatten_queries(unwrap_list(result))
        if folder_path is not None:
            folder = normalize_folder(folder_path)
            queries = [q for q in queries if q.folder_path == folder]
        return queries

    def create(
        self,
        project: str,
        name: str,
        wiql: str,
        folder_path: str = "Shared Queries",
    ) -> WorkItemQuery:
        """
        Create a saved query.

        Args:
            project: Project name
            name: Query name
            wiql: WIQL query text
            folder_path: Parent folder (``/`` or ``\\`` separated)

        Returns:
            Created WorkItemQuery

        """
        folder = normalize_folder(folder_path)
        result = self._invoke(
            f"wit/queries/{folder}",
            project=project,
            method="POST",
            body={"name": name, "wiql": wiql},
            api_version=QUERY_API_VERSION,
        )
        return WorkItemQuery.from_dict(result, folder)

    def delete(self, project: str, query_id: str) -> bool:
        """Delete a saved query or folder by id."""
        self._invoke(
            f"wit/queries/{query_id}",
            project=project,
            method="DELETE",
            api_version=QUERY_API_VERSION,
        )
        return True


# =============================================================================
# Repository Operations
# =============================================================================


class RepositoryOperations:
    """Operations for Git repositories."""

    def __init__(self, invoker: EndpointInvoker, projects: ProjectOperations):
        self._invoke = invoker
        self._projects = projects

    def list(self, project: str | None = None) -> builtins.list[Repository]:
        """List Git repositories, across the collection or in one project."""
        result = self._invoke("git/repositories", project=project)
        return [Repository.from_dict(r) for r in unwrap_list(result)]

    def get(self, project: str | None, name: str) -> Repository | None:
        """Get a repository by name (case-insensitive)."""
        for repo in self.list(project):
            if repo.name.lower() == name.lower():
                return repo
        return None

    def create(self, project: str, name: str) -> Repository:
        """
        Create a Git repository in a project.

        Raises:
            NotFound: If the project does not exist

        """
        target = self._projects.get(project)
        if target is None:
            raise NotFound(f"Project '{project}' not found")

        result = self._invoke(
            "git/repositories",
            method="POST",
            body={"name": name, "project": {"id": target.id}},
        )
        return Repository.from_dict(result)

    def delete(
        self,
        project: str | None = None,
        name: str | None = None,
        repository_id: str | None = None,
    ) -> bool:
        """
        Delete a Git repository by id, or by name within a project.

        Raises:
            NotFound: If no repository has that name (nothing is deleted)

        """
        if not repository_id:
            if not name:
                raise ValidationError("Repository name or id is required")
            repo = self.get(project, name)
            if repo is None:
                raise NotFound(f"Repository '{name}' not found")
            repository_id = repo.id

        self._invoke(f"git/repositories/{repository_id}", method="DELETE")
        return True


# =============================================================================
# Policy Operations
# =============================================================================


class PolicyOperations:
    """Operations for branch (code) policies."""

    def __init__(self, invoker: EndpointInvoker):
        self._invoke = invoker

    def list(self, project: str) -> builtins.list[Policy]:
        """List policy configurations in a project."""
        result = self._invoke(
            "policy/configurations",
            project=project,
            api_version=POLICY_API_VERSION,
        )
        return [Policy.from_dict(p) for p in unwrap_list(result)]

    def create_minimum_reviewers(
        self,
        project: str,
        minimum_reviewers: int,
        branches: Iterable[str],
        repository_id: str | None = None,
        blocking: bool = False,
        creator_vote_counts: bool = False,
    ) -> Policy:
        """
        Require a minimum number of reviewers on pull requests.

        Args:
            project: Project name
            minimum_reviewers: Approvals required
            branches: Branch names (without refs/heads/)
            repository_id: Limit to one repository (all repositories when None)
            blocking: Block completion when the policy is not met
            creator_vote_counts: Count the pull request creator's vote

        Returns:
            Created Policy

        """
        scope = [
            {"repositoryId": repository_id, "refName": f"refs/heads/{branch}", "matchKind": "exact"}
            for branch in branches
        ]
        if not scope:
            raise ValidationError("At least one branch is required")

        body = {
            "isEnabled": True,
            "isBlocking": blocking,
            "type": {"id": MINIMUM_REVIEWERS_POLICY_TYPE},
            "settings": {
                "minimumApproverCount": minimum_reviewers,
                "creatorVoteCounts": creator_vote_counts,
                "scope": scope,
            },
        }
        result = self._invoke(
            "policy/configurations",
            project=project,
            method="POST",
            body=body,
            api_version=POLICY_API_VERSION,
        )
        return Policy.from_dict(result)


# =============================================================================
# Build Definition Operations
# =============================================================================


class BuildDefinitionOperations:
    """Operations for build definitions."""

    def __init__(self, invoker: EndpointInvoker):
        self._invoke = invoker

    def list(self, project: str, name: str | None = None) -> builtins.list[BuildDefinition]:
        """List build definitions in a project, optionally filtered by name."""
        result = self._invoke(
            "build/definitions",
            project=project,
            query={"name": name},
            api_version=BUILD_API_VERSION,
        )
        return [BuildDefinition.from_dict(d) for d in unwrap_list(result)]
