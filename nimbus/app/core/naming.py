"""Naming rules shared by the reconciler and the lifecycle manager.

Namespaces are derived from the project and branch names, never stored.
"""

from __future__ import annotations

CANONICAL_BRANCHES: frozenset[str] = frozenset({"main", "master"})
DEFAULT_BRANCH = "main"

_BRANCH_TRANSLATION = str.maketrans(
    {
        "/": "-",
        "_": "-",
        " ": "-",
        "#": None,
        "!": None,
        "@": None,
        ".": None,
    }
)


def is_canonical_branch(branch: str) -> bool:
    """Return True for the always-allowed branches (``main``/``master``)."""
    return branch in CANONICAL_BRANCHES


def normalize_branch(branch: str | None) -> str:
    """Default an absent or empty branch name to ``main``."""
    return branch or DEFAULT_BRANCH


def sanitize_branch(branch: str) -> str:
    return branch.translate(_BRANCH_TRANSLATION)


def namespace_for(project: str, branch: str) -> str:
    """Map a (project, branch) pair to its cluster namespace.

    Examples:
        >>> namespace_for("Demo", "main")
        'demo'
        >>> namespace_for("My App", "feature/x_1")
        'my app-feature-x-1'
    """
    namespace = project.lower()
    if is_canonical_branch(branch):
        return namespace
    return f"{namespace}-{sanitize_branch(branch)}"


def secret_bundle_name(project: str) -> str:
    """Name of the Secret holding a project's environment bundle."""
    return f"{project.lower()}-env"


def storage_claim_name(identifier: object) -> str:
    return f"pvc-{identifier}"


def ingress_name(service: str) -> str:
    return f"{service}-ingress"
