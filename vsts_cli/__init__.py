"""
VSTS CLI - Three-layer architecture for the VSTS REST API.

Layers:
- core: Session, addressing, HTTP client and polling
- sdk: High-level VSTSClient with resource operations
- cli: Opinionated command-line interface
"""

from vsts_cli.core.session import Session
from vsts_cli.sdk import VSTSClient

__version__ = "0.1.0"
__all__ = ["Session", "VSTSClient"]
