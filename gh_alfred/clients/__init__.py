"""Remote API clients.

- GitHub: GraphQL bulk repository walk and REST repository search
- crates.io: crate search
"""

from .github import GitHubClient
from .crates import CratesClient

__all__ = [
    "GitHubClient",
    "CratesClient",
]
