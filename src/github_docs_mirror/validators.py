"""
Input validation functions for github-docs-mirror.

Provides validation for repository coordinates (owner, repository name,
ref) and repository-relative paths so that bad configuration is caught
before any request is made to GitHub.
"""

import re

# GitHub owner: alphanumerics and single hyphens, max 39 chars
_OWNER_PATTERN = re.compile(r"^[A-Za-z0-9](?:[A-Za-z0-9-]{0,38})$")

# Repository names allow letters, digits, '.', '_' and '-'
_REPO_PATTERN = re.compile(r"^[A-Za-z0-9._-]{1,100}$")


# ---------------------------------------------------------------------------
# Error message formatting helpers
# ---------------------------------------------------------------------------


def format_validation_error(field_name: str, reason: str) -> str:
    """
    Generate consistent error message for validation failures.

    Args:
        field_name: Human-readable field name (e.g., "Repository owner")
        reason: Description of validation failure (e.g., "cannot be empty")

    Returns:
        Formatted error message string
    """
    return f"{field_name} {reason}"


def validate_owner(owner: str) -> tuple[bool, str]:
    """
    Validate a GitHub account or organisation name.

    Returns:
        Tuple of (is_valid, error_message).
        Returns (True, "") if valid, (False, reason) if invalid.
    """
    if not owner or not owner.strip():
        return (
            False,
            format_validation_error(
                "Repository owner", "cannot be empty"
            ),
        )

    if not _OWNER_PATTERN.match(owner):
        return (
            False,
            format_validation_error(
                "Repository owner",
                f"'{owner}' is not a valid GitHub account name",
            ),
        )

    return (True, "")


def validate_repo_name(repo: str) -> tuple[bool, str]:
    """
    Validate a GitHub repository name.

    Returns:
        Tuple of (is_valid, error_message).
    """
    if not repo or not repo.strip():
        return (
            False,
            format_validation_error(
                "Repository name", "cannot be empty"
            ),
        )

    if repo in (".", "..") or not _REPO_PATTERN.match(repo):
        return (
            False,
            format_validation_error(
                "Repository name",
                f"'{repo}' is not a valid repository name",
            ),
        )

    return (True, "")


def validate_ref(ref: str) -> tuple[bool, str]:
    """
    Validate a git ref (branch, tag or commit sha).

    Validation rules:
        - Cannot be empty or whitespace-only
        - Cannot contain whitespace, '..' or '~^:?*[\\'
        - Cannot start or end with '/'
    """
    if not ref or not ref.strip():
        return (
            False,
            format_validation_error("Ref", "cannot be empty"),
        )

    if ".." in ref or any(
        ch in ref for ch in " \t\n~^:?*[\\"
    ):
        return (
            False,
            format_validation_error(
                "Ref", f"'{ref}' contains invalid characters"
            ),
        )

    if ref.startswith("/") or ref.endswith("/"):
        return (
            False,
            format_validation_error(
                "Ref", "cannot start or end with '/'"
            ),
        )

    return (True, "")


def validate_repo_path(path: str) -> tuple[bool, str]:
    """
    Validate a repository-relative path.

    An empty path is valid and denotes the repository root.

    Validation rules:
        - Cannot contain '..' segments (path traversal protection)
        - Cannot have empty path segments (e.g., 'docs//guide')
        - Cannot be absolute
    """
    if not path:
        return (True, "")

    if path.startswith("/"):
        return (
            False,
            format_validation_error("Path", "must be relative"),
        )

    if ".." in path.split("/"):
        return (
            False,
            format_validation_error("Path", "cannot contain '..'"),
        )

    if "//" in path:
        return (
            False,
            format_validation_error(
                "Path", "cannot have empty path segments"
            ),
        )

    return (True, "")
