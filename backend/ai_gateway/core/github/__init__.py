"""
GitHub Access
=============

Repository tree listing and content retrieval.
"""

from ai_gateway.core.github.client import GitHubClient, RepoRef, TreeEntry, parse_repo_url

__all__ = ["GitHubClient", "RepoRef", "TreeEntry", "parse_repo_url"]
