"""Git operations."""

from relbot.git.repository import Commit, GitError, Repository, parse_github_slug

__all__ = ["Commit", "GitError", "Repository", "parse_github_slug"]
