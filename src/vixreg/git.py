"""Git operations used to obtain a registry checkout."""

import subprocess
from pathlib import Path


class GitError(Exception):
    """Raised when a git command fails."""

    def __init__(self, message: str, stderr: str = "") -> None:
        self.stderr = stderr
        super().__init__(f"{message}: {stderr}" if stderr else message)


def is_git_available() -> bool:
    """Check if the git executable can be run."""
    try:
        subprocess.run(
            ["git", "--version"],
            capture_output=True,
            check=True,
        )
        return True
    except (FileNotFoundError, subprocess.CalledProcessError):
        return False


def has_git_marker(path: Path) -> bool:
    """Return True if *path* looks like the root of a git checkout.

    Only the ``.git`` marker is inspected; it may be a directory or, for
    worktrees and submodules, a file.
    """
    return (path / ".git").exists()


def shallow_clone(url: str, clone_dir: Path) -> None:
    """Clone *url* into *clone_dir* with a depth of one commit.

    Raises:
        GitError: If git is missing or the clone fails.
    """
    clone_dir.parent.mkdir(parents=True, exist_ok=True)
    try:
        subprocess.run(
            ["git", "clone", "--depth", "1", url, str(clone_dir)],
            check=True,
            capture_output=True,
            text=True,
        )
    except FileNotFoundError as e:
        msg = "git is not installed"
        raise GitError(msg) from e
    except subprocess.CalledProcessError as e:
        msg = f"Failed to clone {url}"
        raise GitError(msg, (e.stderr or "").strip()) from e


def pull_fast_forward(clone_dir: Path) -> None:
    """Fast-forward an existing clone to its upstream.

    Raises:
        GitError: If git is missing or the pull fails.
    """
    try:
        subprocess.run(
            ["git", "pull", "--ff-only", "--quiet"],
            cwd=clone_dir,
            check=True,
            capture_output=True,
            text=True,
        )
    except FileNotFoundError as e:
        msg = "git is not installed"
        raise GitError(msg) from e
    except subprocess.CalledProcessError as e:
        msg = f"Failed to update {clone_dir}"
        raise GitError(msg, (e.stderr or "").strip()) from e

