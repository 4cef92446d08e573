"""
Core types for VSTS REST API resources.

These dataclasses provide type safety and IDE support for API responses.
"""

from dataclasses import dataclass, field
from typing import Any


def unwrap_list(result: Any) -> list[dict[str, Any]]:
    """Extract the items of a list response (``{"count": n, "value": [...]}``)."""
    if isinstance(result, dict):
        return result.get("value") or []
    if isinstance(result, list):
        return result
    return []


# =============================================================================
# Project Types
# =============================================================================


@dataclass
class Project:
    """A team project."""

    id: str
    name: str
    description: str | None = None
    url: str | None = None
    state: str | None = None
    revision: int | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Project":
        """Create from API response dict."""
        return cls(
            id=data["id"],
            name=data.get("name") or "",
            description=data.get("description"),
            url=data.get("url"),
            state=data.get("state"),
            revision=data.get("revision"),
        )


@dataclass
class Process:
    """A process template (Agile, Scrum, CMMI, ...)."""

    id: str
    name: str
    description: str | None = None
    is_default: bool = False
    type: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Process":
        """Create from API response dict."""
        return cls(
            id=data["id"],
            name=data.get("name") or "",
            description=data.get("description"),
            is_default=data.get("isDefault", False),
            type=data.get("type"),
        )


# =============================================================================
# Work Item Types
# =============================================================================


@dataclass
class WorkItem:
    """A work item with its field values."""

    id: int
    rev: int | None = None
    fields: dict[str, Any] = field(default_factory=dict)
    url: str | None = None

    @property
    def title(self) -> str | None:
        return self.fields.get("System.Title")

    @property
    def work_item_type(self) -> str | None:
        return self.fields.get("System.WorkItemType")

    @property
    def state(self) -> str | None:
        return self.fields.get("System.State")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "WorkItem":
        """Create from API response dict."""
        return cls(
            id=data["id"],
            rev=data.get("rev"),
            fields=data.get("fields") or {},
            url=data.get("url"),
        )


@dataclass
class WorkItemQuery:
    """A saved work item query, flattened out of its folder tree."""

    id: str
    name: str
    path: str | None = None
    folder_path: str | None = None
    wiql: str | None = None
    is_public: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any], folder_path: str | None = None) -> "WorkItemQuery":
        """Create from API response dict."""
        return cls(
            id=data["id"],
            name=data.get("name") or "",
            path=data.get("path"),
            folder_path=folder_path,
            wiql=data.get("wiql"),
            is_public=data.get("isPublic", False),
        )


def flatten_queries(items: list[dict[str, Any]], folder_path: str | None = None) -> list[WorkItemQuery]:
    """
    Flatten a query folder tree into its leaf queries.

    Each query records the path of the folder it was found in. Top-level
    queries have the folder path None.
    """
    queries: list[WorkItemQuery] = []
    for item in items:
        if item.get("isFolder"):
            child_path = item.get("path") or item.get("name")
            queries.extend(flatten_queries(item.get("children") or [], child_path))
        else:
            queries.append(WorkItemQuery.from_dict(item, folder_path))
    return queries


# =============================================================================
# Git Types
# =============================================================================


@dataclass
class Repository:
    """A Git repository."""

    id: str
    name: str
    project_id: str | None = None
    project_name: str | None = None
    default_branch: str | None = None
    remote_url: str | None = None
    url: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Repository":
        """Create from API response dict."""
        project = data.get("project") or {}
        return cls(
            id=data["id"],
            name=data.get("name") or "",
            project_id=project.get("id"),
            project_name=project.get("name"),
            default_branch=data.get("defaultBranch"),
            remote_url=data.get("remoteUrl"),
            url=data.get("url"),
        )


# =============================================================================
# Policy Types
# =============================================================================


@dataclass
class Policy:
    """A branch policy configuration."""

    id: int
    type_id: str | None = None
    type_name: str | None = None
    is_enabled: bool = True
    is_blocking: bool = False
    settings: dict[str, Any] = field(default_factory=dict)
    revision: int | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Policy":
        """Create from API response dict."""
        policy_type = data.get("type") or {}
        return cls(
            id=data["id"],
            type_id=policy_type.get("id"),
            type_name=policy_type.get("displayName"),
            is_enabled=data.get("isEnabled", True),
            is_blocking=data.get("isBlocking", False),
            settings=data.get("settings") or {},
            revision=data.get("revision"),
        )


# =============================================================================
# Build Types
# =============================================================================


@dataclass
class BuildDefinition:
    """A build definition."""

    id: int
    name: str
    path: str | None = None
    type: str | None = None
    revision: int | None = None
    url: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "BuildDefinition":
        """Create from API response dict."""
        return cls(
            id=data["id"],
            name=data.get("name") or "",
            path=data.get("path"),
            type=data.get("type"),
            revision=data.get("revision"),
            url=data.get("url"),
        )
