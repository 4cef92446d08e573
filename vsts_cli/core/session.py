"""Connection and authentication context shared by every request."""

import dataclasses
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum

from vsts_cli.core.client import PLATFORM_DOMAIN, ValidationError

DEFAULT_COLLECTION = "DefaultCollection"


class Scheme(str, Enum):
    """URI scheme used to reach the server."""

    HTTP = "http"
    HTTPS = "https"

    @classmethod
    def parse(cls, value: "Scheme | str") -> "Scheme":
        """Coerce a scheme name (any case) to a Scheme."""
        if isinstance(value, Scheme):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            raise ValidationError(f"Unsupported scheme: {value}", details={"supported": [s.value for s in cls]})


@dataclass(frozen=True)
class Session:
    """
    Immutable account, credential and routing configuration.

    Build one per credential set and pass it to every call. Use ``replace``
    to derive a variant; sessions are never mutated.
    """

    account_name: str | None
    user: str
    token: str = field(repr=False)
    collection: str = DEFAULT_COLLECTION
    server: str = PLATFORM_DOMAIN
    scheme: Scheme = Scheme.HTTPS

    def __post_init__(self):
        object.__setattr__(self, "scheme", Scheme.parse(self.scheme))

    @classmethod
    def from_credentials(
        cls,
        account_name: str | None,
        user: str,
        token: str,
        collection: str = DEFAULT_COLLECTION,
        server: str = PLATFORM_DOMAIN,
        scheme: Scheme | str = Scheme.HTTPS,
    ) -> "Session":
        """Create a session from raw credentials."""
        return cls(
            account_name=account_name or None,
            user=user,
            token=token,
            collection=collection,
            server=server,
            scheme=Scheme.parse(scheme),
        )

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "Session":
        """
        Create a session from environment variables.

        Reads VSTS_ACCOUNT, VSTS_USER, VSTS_TOKEN, VSTS_COLLECTION,
        VSTS_SERVER and VSTS_SCHEME.

        Raises:
            ValidationError: If VSTS_USER or VSTS_TOKEN is not set

        """
        env = os.environ if environ is None else environ
        user = env.get("VSTS_USER")
        token = env.get("VSTS_TOKEN")
        if not user or not token:
            raise ValidationError("VSTS_USER and VSTS_TOKEN environment variables must be set")

        return cls.from_credentials(
            account_name=env.get("VSTS_ACCOUNT"),
            user=user,
            token=token,
            collection=env.get("VSTS_COLLECTION") or DEFAULT_COLLECTION,
            server=env.get("VSTS_SERVER") or PLATFORM_DOMAIN,
            scheme=env.get("VSTS_SCHEME") or Scheme.HTTPS,
        )

    def replace(self, **changes) -> "Session":
        """Return a new session with the given fields changed."""
        return dataclasses.replace(self, **changes)
