"""
submodule-helper: Keep a repository and its submodules on the same branch.

Checkout, commit, pull and push across a main repository and every submodule
it registers. Repositories are handled one at a time, submodules first, and a
broken submodule never stops the others.
"""

from __future__ import annotations

import json
import os
import subprocess
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path

import typer
from rich.console import Console

from ._version import __version__
from .formatters import OutputFormatter
from .interaction import ConsoleInteraction, NullInteraction, UserInteraction, contains_ignore_case
from .logger import logger
from .schema import get_tool_schema

# =============================================================================
# Errors
# =============================================================================


class SubmoduleHelperError(Exception):
    """Base class for failures raised against a repository."""

    def __init__(self, message: str, path: Path | None = None):
        super().__init__(message)
        self.path = path


class RepoAccessError(SubmoduleHelperError):
    """Path is not a repository root, or it cannot be read."""


class CheckoutError(SubmoduleHelperError):
    """Branch state does not allow the requested checkout."""


class CommitError(SubmoduleHelperError):
    """Staging or committing failed."""


class NetworkError(SubmoduleHelperError):
    """Fetch, pull or push failed (transport or authentication)."""


class UserCancelled(SubmoduleHelperError):
    """An interactive prompt was dismissed. Ends the command without side effects."""


# =============================================================================
# Domain Models
# =============================================================================


class BranchAction(StrEnum):
    """What the branch reconciler did in a repository."""

    CHECKOUT_LOCAL = "checkout_local"
    CHECKOUT_REMOTE = "checkout_remote"
    CREATE = "create"


@dataclass
class RepositoryStatus:
    """Working tree and upstream snapshot of one repository."""

    path: Path
    name: str
    branch: str = ""
    remote_branch: str = ""
    ahead_count: int = 0
    behind_count: int = 0
    staged_count: int = 0
    modified_count: int = 0
    error_message: str = ""

    @property
    def is_dirty(self) -> bool:
        return self.modified_count + self.staged_count > 0

    @property
    def needs_push(self) -> bool:
        return self.ahead_count > 0

    @property
    def needs_pull(self) -> bool:
        return self.behind_count > 0

    @property
    def is_detached(self) -> bool:
        return self.branch == "(detached)"

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON output."""
        return {
            "path": str(self.path),
            "name": self.name,
            "branch": self.branch,
            "remote_branch": self.remote_branch,
            "ahead_count": self.ahead_count,
            "behind_count": self.behind_count,
            "staged_count": self.staged_count,
            "modified_count": self.modified_count,
            "is_dirty": self.is_dirty,
            "needs_push": self.needs_push,
            "needs_pull": self.needs_pull,
            "error_message": self.error_message,
        }


@dataclass
class OperationResult:
    """Outcome of one operation on one repository."""

    path: Path
    name: str
    success: bool
    operation: str
    message: str = ""
    error: str = ""

    def to_dict(self) -> dict:
        return {
            "path": str(self.path),
            "name": self.name,
            "success": self.success,
            "operation": self.operation,
            "message": self.message,
            "error": self.error,
        }


@dataclass
class BranchResult(OperationResult):
    """Outcome of a branch checkout, with the action taken."""

    action: BranchAction | None = None
    base_branch: str = ""

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["action"] = self.action.value if self.action else None
        data["base_branch"] = self.base_branch
        return data


@dataclass
class BranchListing:
    """Local branches and remote-tracking branches of a repository."""

    local: list[str] = field(default_factory=list)
    remote: list[str] = field(default_factory=list)

    @property
    def all(self) -> list[str]:
        return [*self.local, *self.remote]


@dataclass
class Submodule:
    """One entry of the main repository's submodule registry."""

    relative_path: str
    absolute_path: Path
    commit: str = ""
    status_flag: str = " "
    descriptor: str = ""

    @property
    def is_initialized(self) -> bool:
        return self.status_flag != "-"

    def to_dict(self) -> dict:
        return {
            "relative_path": self.relative_path,
            "absolute_path": str(self.absolute_path),
            "commit": self.commit,
            "status_flag": self.status_flag,
            "descriptor": self.descriptor,
            "is_initialized": self.is_initialized,
        }


# =============================================================================
# Git Operations (Low-level)
# =============================================================================


class GitOperations:
    """Low-level Git operations for a single repository.

    Every command returns ``(success, output)``. On failure ``output`` carries
    git's error text; turning that into an exception is the caller's job.
    """

    def __init__(self, repo_path: Path):
        self.repo_path = repo_path

    def _run(self, *args: str, check: bool = False) -> subprocess.CompletedProcess:
        """Run a git command in the repository."""
        return subprocess.run(
            ["git", *args],
            cwd=self.repo_path,
            capture_output=True,
            text=True,
            check=check,
        )

    def _execute(self, *args: str) -> tuple[bool, str]:
        try:
            result = self._run(*args)
        except OSError as e:
            # Missing directory or no git executable
            return False, str(e)
        if result.returncode != 0:
            return False, result.stderr.strip() or result.stdout.strip()
        # Leading whitespace is significant in some outputs (submodule status)
        return True, result.stdout.rstrip() or result.stderr.strip()

    def get_toplevel(self) -> tuple[bool, str]:
        """Get the top-level directory of the enclosing work tree."""
        return self._execute("rev-parse", "--show-toplevel")

    def get_superproject(self) -> tuple[bool, str]:
        """Get the work tree of the superproject (empty outside a submodule)."""
        return self._execute("rev-parse", "--show-superproject-working-tree")

    def status_porcelain(self) -> tuple[bool, str]:
        """Get branch, upstream and file state in one command."""
        return self._execute("status", "--porcelain=v2", "--branch")

    def get_current_branch(self) -> tuple[bool, str]:
        """Get current branch name ("HEAD" when detached)."""
        return self._execute("rev-parse", "--abbrev-ref", "HEAD")

    def list_branches(self, remote: bool = False) -> tuple[bool, str]:
        """List local branches, or remote-tracking ones as <remote>/<name>."""
        refs = "refs/remotes" if remote else "refs/heads"
        return self._execute("for-each-ref", "--format=%(refname:lstrip=2)", refs)

    def switch(self, name: str) -> tuple[bool, str]:
        return self._execute("switch", name)

    def switch_tracking(self, name: str, remote_ref: str) -> tuple[bool, str]:
        return self._execute("switch", "-c", name, "--track", remote_ref)

    def switch_create(self, name: str) -> tuple[bool, str]:
        return self._execute("switch", "-c", name)

    def stage_all(self) -> tuple[bool, str]:
        return self._execute("add", "--all")

    def commit(self, message: str) -> tuple[bool, str]:
        return self._execute("commit", "-m", message)

    def fetch_all(self) -> tuple[bool, str]:
        """Fetch all remotes."""
        return self._execute("fetch", "--all", "--prune")

    def pull(self) -> tuple[bool, str]:
        """Pull from remote."""
        return self._execute("pull")

    def push(self) -> tuple[bool, str]:
        """Push to remote."""
        return self._execute("push")

    def submodule_status(self) -> tuple[bool, str]:
        return self._execute("submodule", "status")


def parse_status_porcelain(output: str) -> dict:
    """Parse 'git status --porcelain=v2 --branch' output.

    Returns a dict with keys: branch, remote_branch, ahead, behind,
    staged_count, modified_count. ``modified_count`` counts every path git
    reports (staged, unstaged, untracked or unmerged).
    """
    info: dict = {
        "branch": "",
        "remote_branch": "",
        "ahead": 0,
        "behind": 0,
        "staged_count": 0,
        "modified_count": 0,
    }
    for line in output.splitlines():
        if line.startswith("# branch.head "):
            info["branch"] = line[len("# branch.head ") :]
        elif line.startswith("# branch.upstream "):
            info["remote_branch"] = line[len("# branch.upstream ") :]
        elif line.startswith("# branch.ab "):
            # Format: # branch.ab +<ahead> -<behind>
            parts = line.split()
            if len(parts) == 4:
                info["ahead"] = abs(int(parts[2]))
                info["behind"] = abs(int(parts[3]))
        elif line.startswith("1 ") or line.startswith("2 "):
            # Changed entry: XY sub mH mI mW hH hI path
            info["modified_count"] += 1
            if line[2] != ".":
                info["staged_count"] += 1
        elif line.startswith("u "):
            info["modified_count"] += 1
            info["staged_count"] += 1
        elif line.startswith("? "):
            info["modified_count"] += 1
    return info


# =============================================================================
# Repository Handle
# =============================================================================


class GitRepository:
    """Handle on exactly one repository root.

    Status is read fresh on every call. The only thing remembered is that
    the path was verified to be a repository top level.
    """

    def __init__(self, path: Path, ops: GitOperations | None = None):
        self.path = path
        self.name = path.name
        self.ops = ops if ops is not None else GitOperations(path)
        self._verified = False

    def _ensure_repository(self):
        if self._verified:
            return
        success, output = self.ops.get_toplevel()
        if not success:
            raise RepoAccessError(f"Not a git repository: {self.path} ({output})", self.path)
        # An uninitialized submodule directory resolves to the enclosing repository
        if Path(output).resolve() != self.path.resolve():
            raise RepoAccessError(f"Not a repository root: {self.path} (inside {output})", self.path)
        self._verified = True

    def status(self) -> RepositoryStatus:
        """Read the current status."""
        self._ensure_repository()
        success, output = self.ops.status_porcelain()
        if not success:
            raise RepoAccessError(f"Cannot read status of {self.name}: {output}", self.path)

        info = parse_status_porcelain(output)
        return RepositoryStatus(
            path=self.path,
            name=self.name,
            branch=info["branch"],
            remote_branch=info["remote_branch"],
            ahead_count=info["ahead"],
            behind_count=info["behind"],
            staged_count=info["staged_count"],
            modified_count=info["modified_count"],
        )

    def branch_listing(self, include_remote: bool = True) -> BranchListing:
        """List local and (optionally) remote-tracking branches."""
        self._ensure_repository()
        listing = BranchListing(local=self._list_branches(remote=False))
        if include_remote:
            listing.remote = [
                ref for ref in self._list_branches(remote=True) if not ref.endswith("/HEAD")
            ]
        return listing

    def _list_branches(self, remote: bool) -> list[str]:
        success, output = self.ops.list_branches(remote=remote)
        if not success:
            raise RepoAccessError(f"Cannot list branches of {self.name}: {output}", self.path)
        return [line.strip() for line in output.splitlines() if line.strip()]

    def branches(self, include_remote: bool = True) -> list[str]:
        """Local branch names, then remote-tracking names as <remote>/<name>."""
        return self.branch_listing(include_remote=include_remote).all

    def current_branch(self) -> str | None:
        """Current branch name, or None on a detached or unborn HEAD."""
        self._ensure_repository()
        success, output = self.ops.get_current_branch()
        if not success or output == "HEAD":
            return None
        return output

    def checkout_existing(self, name: str):
        """Switch to an existing branch."""
        self._ensure_repository()
        success, output = self.ops.switch(name)
        if not success:
            raise CheckoutError(f"Cannot check out '{name}' in {self.name}: {output}", self.path)

    def checkout_tracking_remote(self, name: str, remote_ref: str):
        """Create local branch ``name`` tracking ``remote_ref`` and switch to it."""
        self._ensure_repository()
        success, output = self.ops.switch_tracking(name, remote_ref)
        if not success:
            raise CheckoutError(
                f"Cannot track '{remote_ref}' as '{name}' in {self.name}: {output}", self.path
            )

    def create_local_branch(self, name: str) -> str | None:
        """Create ``name`` from HEAD and switch to it.

        Returns the branch HEAD was on before, or None if it was detached.
        """
        base = self.current_branch()
        success, output = self.ops.switch_create(name)
        if not success:
            raise CheckoutError(f"Cannot create branch '{name}' in {self.name}: {output}", self.path)
        return base

    def stage_and_commit(self, message: str) -> str:
        """Stage every change and commit it. Callers check the status first."""
        self._ensure_repository()
        success, output = self.ops.stage_all()
        if not success:
            raise CommitError(f"Cannot stage changes in {self.name}: {output}", self.path)
        success, output = self.ops.commit(message)
        if not success:
            raise CommitError(f"Commit failed in {self.name}: {output}", self.path)
        return output

    def fetch(self) -> str:
        self._ensure_repository()
        success, output = self.ops.fetch_all()
        if not success:
            raise NetworkError(f"Fetch failed in {self.name}: {output}", self.path)
        return output

    def pull(self) -> str:
        self._ensure_repository()
        success, output = self.ops.pull()
        if not success:
            raise NetworkError(f"Pull failed in {self.name}: {output}", self.path)
        return output

    def push(self) -> str:
        self._ensure_repository()
        success, output = self.ops.push()
        if not success:
            raise NetworkError(f"Push failed in {self.name}: {output}", self.path)
        return output

    def submodule_status_text(self) -> str:
        """Raw 'git submodule status' output."""
        self._ensure_repository()
        success, output = self.ops.submodule_status()
        if not success:
            raise RepoAccessError(f"Cannot read submodules of {self.name}: {output}", self.path)
        return output


# =============================================================================
# Submodule Locator
# =============================================================================

SUBMODULE_FLAGS = " +-U"


def parse_submodule_status(text: str, root: Path) -> list[Submodule]:
    """Parse 'git submodule status' output into submodules under ``root``.

    Each line is ``<flag><sha> <path>[ (<describe>)]`` where the flag is a
    space, '+', '-' or 'U'. Blank lines are skipped.
    """
    submodules = []
    for line in text.splitlines():
        if not line.strip():
            continue

        flag, fields = line[0], line[1:]
        if flag not in SUBMODULE_FLAGS:
            # Leading space lost upstream (output was stripped)
            flag, fields = " ", line

        commit, _, rest = fields.strip().partition(" ")
        rest = rest.strip()
        descriptor = ""
        if rest.endswith(")") and " (" in rest:
            rest, _, descriptor = rest.rpartition(" (")
            descriptor = descriptor[:-1]
        if not commit or not rest:
            continue

        submodules.append(
            Submodule(
                relative_path=rest,
                absolute_path=root / rest,
                commit=commit,
                status_flag=flag,
                descriptor=descriptor,
            )
        )
    return submodules


def find_submodules(repo: GitRepository) -> list[Submodule]:
    """Submodules registered in ``repo``. Empty when there are none."""
    try:
        text = repo.submodule_status_text()
    except RepoAccessError as e:
        logger.warning("submodule_registry_unreadable", repo=str(repo.path), error=str(e))
        return []
    return parse_submodule_status(text, repo.path)


class SubmoduleWorkspace:
    """A main repository plus the submodules registered in it."""

    def __init__(
        self,
        root_path: Path,
        repo_factory: Callable[[Path], GitRepository] | None = None,
    ):
        self.root_path = root_path
        self.repo_factory = repo_factory or GitRepository
        self.main = self.repo_factory(root_path)
        self._submodules: list[Submodule] | None = None

    def discover_submodules(self) -> list[Submodule]:
        """Locate submodules (registry order)."""
        if self._submodules is None:
            self._submodules = find_submodules(self.main)
        return self._submodules

    def submodule_repositories(self) -> list[GitRepository]:
        return [self.repo_factory(s.absolute_path) for s in self.discover_submodules()]

    def get_all_status(self, fetch_first: bool = False) -> list[RepositoryStatus]:
        """Status of the main repository followed by every submodule."""
        statuses = []
        for repo in [self.main, *self.submodule_repositories()]:
            try:
                if fetch_first:
                    repo.fetch()
                statuses.append(repo.status())
            except SubmoduleHelperError as e:
                statuses.append(RepositoryStatus(path=repo.path, name=repo.name, error_message=str(e)))
        return statuses


def open_workspace(path: Path | None = None) -> SubmoduleWorkspace:
    """Open the repository containing ``path`` (default: current directory).

    Inside a submodule this is the superproject that registers it.
    """
    start = (path or Path(".")).resolve()
    ops = GitOperations(start)
    success, output = ops.get_toplevel()
    if not success:
        raise RepoAccessError(f"Not a git repository: {start} ({output})", start)

    success, superproject = ops.get_superproject()
    if success and superproject:
        return SubmoduleWorkspace(Path(superproject))
    return SubmoduleWorkspace(Path(output))


# =============================================================================
# Orchestrators
# =============================================================================


class BatchOrchestrator:
    """Runs one step per submodule, then one on the main repository.

    Submodule failures are reported and recorded; the main repository's
    failure propagates. ``should_cancel`` is consulted before each submodule
    starts; once it returns True no further repository is started.
    """

    operation = ""

    def __init__(
        self,
        workspace: SubmoduleWorkspace,
        interaction: UserInteraction | None = None,
        should_cancel: Callable[[], bool] | None = None,
    ):
        self.workspace = workspace
        self.interaction = interaction or NullInteraction()
        self.should_cancel = should_cancel
        self.cancelled = False

    def _result(self, repo: GitRepository, message: str) -> OperationResult:
        return OperationResult(
            path=repo.path, name=repo.name, success=True, operation=self.operation, message=message
        )

    def _for_each_submodule(
        self, step: Callable[[GitRepository], OperationResult], title: str
    ) -> list[OperationResult]:
        self.cancelled = False
        repos = self.workspace.submodule_repositories()
        total = len(repos)
        results: list[OperationResult] = []

        for index, repo in enumerate(repos, start=1):
            if self.should_cancel is not None and self.should_cancel():
                self.cancelled = True
                logger.info("batch_cancelled", operation=self.operation, remaining=total - index + 1)
                break

            self.interaction.report_progress(f"{title}: {repo.name}", index, total)
            try:
                results.append(step(repo))
            except SubmoduleHelperError as e:
                logger.warning("submodule_failed", operation=self.operation, repo=str(repo.path), error=str(e))
                self.interaction.notify_error(str(e))
                results.append(
                    OperationResult(
                        path=repo.path,
                        name=repo.name,
                        success=False,
                        operation=self.operation,
                        error=str(e),
                    )
                )
        return results


class BranchReconciler(BatchOrchestrator):
    """Puts every submodule on a named branch, creating it where missing."""

    operation = "checkout"

    def __init__(
        self,
        workspace: SubmoduleWorkspace,
        interaction: UserInteraction | None = None,
        should_cancel: Callable[[], bool] | None = None,
        *,
        remote: str = "origin",
        default_branch: str = "main",
    ):
        super().__init__(workspace, interaction, should_cancel)
        self.remote = remote
        self.default_branch = default_branch

    def select_branch(self) -> str:
        """Ask the user for a branch of the main repository."""
        listing = self.workspace.main.branch_listing(include_remote=True)
        selection = self.interaction.prompt_choice(listing.all, contains_ignore_case)
        if not selection:
            raise UserCancelled("No branch selected")
        return self.resolve_branch_name(selection, listing)

    def resolve_branch_name(self, name: str, listing: BranchListing | None = None) -> str:
        """Map ``name`` to a branch the main repository can switch to.

        A remote-tracking name such as ``origin/feature`` yields ``feature``.
        Raises CheckoutError when the main repository has no such branch,
        local or remote.
        """
        main = self.workspace.main
        if listing is None:
            listing = main.branch_listing(include_remote=True)

        if name not in listing.local and name in listing.remote:
            name = name.split("/", 1)[1]
        if name in listing.local:
            return name
        if any(ref.split("/", 1)[-1] == name for ref in listing.remote):
            return name
        raise CheckoutError(f"Cannot check out '{name}': no such branch in {main.name}", main.path)

    def reconcile(self, repo: GitRepository, name: str) -> BranchResult:
        """Check out ``name`` in ``repo``: local first, then remote, else create."""
        try:
            repo.fetch()
        except NetworkError as e:
            logger.warning("fetch_failed", repo=str(repo.path), error=str(e))

        listing = repo.branch_listing(include_remote=True)
        remote_ref = f"{self.remote}/{name}"
        base_branch = ""

        if name in listing.local:
            repo.checkout_existing(name)
            action = BranchAction.CHECKOUT_LOCAL
            message = f"Checked out local branch '{name}'"
        elif remote_ref in listing.remote:
            repo.checkout_tracking_remote(name, remote_ref)
            action = BranchAction.CHECKOUT_REMOTE
            message = f"Checked out remote branch '{remote_ref}' as '{name}'"
        else:
            base_branch = repo.create_local_branch(name) or self.default_branch
            action = BranchAction.CREATE
            message = f"Created branch '{name}' from '{base_branch}'"

        logger.info("branch_reconciled", repo=str(repo.path), branch=name, action=action.value)
        self.interaction.notify_info(f"{repo.name}: {message}")
        return BranchResult(
            path=repo.path,
            name=repo.name,
            success=True,
            operation=self.operation,
            message=message,
            action=action,
            base_branch=base_branch,
        )

    def checkout_all(self, name: str) -> list[OperationResult]:
        """Reconcile ``name`` in every submodule, then check it out in the main repository."""
        if not name or not name.strip():
            raise ValueError("No branch name given")
        name = self.resolve_branch_name(name)

        results = self._for_each_submodule(
            lambda repo: self.reconcile(repo, name), f"Checking out '{name}'"
        )
        if self.cancelled:
            return results

        main = self.workspace.main
        main.checkout_existing(name)
        logger.info("main_checked_out", repo=str(main.path), branch=name)
        results.append(
            BranchResult(
                path=main.path,
                name=main.name,
                success=True,
                operation=self.operation,
                message=f"Checked out branch '{name}'",
                action=BranchAction.CHECKOUT_LOCAL,
            )
        )
        return results


class CommitOrchestrator(BatchOrchestrator):
    """Stages and commits pending work everywhere with one message."""

    operation = "commit"

    def commit_all(self, message: str, dry_run: bool = False) -> list[OperationResult]:
        if not message or not message.strip():
            raise ValueError("No commit message entered")

        results = self._for_each_submodule(
            lambda repo: self._commit(repo, message, dry_run), "Committing"
        )
        if self.cancelled:
            return results
        results.append(self._commit(self.workspace.main, message, dry_run))
        return results

    def _commit(self, repo: GitRepository, message: str, dry_run: bool) -> OperationResult:
        status = repo.status()
        if not status.is_dirty:
            return self._result(repo, "Nothing to commit")
        if dry_run:
            return self._result(repo, f"Would commit {status.modified_count} file(s) (dry-run)")

        repo.stage_and_commit(message)
        logger.info("committed", repo=str(repo.path), files=status.modified_count)
        return self._result(repo, f"Committed {status.modified_count} file(s)")


class SyncOrchestrator(BatchOrchestrator):
    """Pulls what is behind and pushes what is ahead, everywhere."""

    operation = "sync"

    def sync_all(self, dry_run: bool = False, fetch_first: bool = False) -> list[OperationResult]:
        results = self._for_each_submodule(
            lambda repo: self._sync(repo, dry_run, fetch_first), "Syncing"
        )
        if self.cancelled:
            return results
        results.append(self._sync(self.workspace.main, dry_run, fetch_first))
        return results

    def _sync(self, repo: GitRepository, dry_run: bool, fetch_first: bool) -> OperationResult:
        if fetch_first:
            repo.fetch()
        status = repo.status()
        if not status.remote_branch:
            return self._result(repo, "No upstream configured")

        steps = []
        if status.needs_pull:
            if dry_run:
                steps.append(f"would pull {status.behind_count}")
            else:
                repo.pull()
                steps.append(f"pulled {status.behind_count}")
                logger.info("pulled", repo=str(repo.path), commits=status.behind_count)
                # A merge on pull changes what is left to push
                status = repo.status()

        if status.needs_push:
            if dry_run:
                steps.append(f"would push {status.ahead_count}")
            else:
                repo.push()
                steps.append(f"pushed {status.ahead_count}")
                logger.info("pushed", repo=str(repo.path), commits=status.ahead_count)

        if not steps:
            return self._result(repo, "Up to date")
        return self._result(repo, ", ".join(steps).capitalize())


# =============================================================================
# Configuration
# =============================================================================


@dataclass
class HelperConfig:
    """Settings shared by all commands."""

    remote: str = "origin"
    default_branch: str = "main"


CONFIG_ENV_VARS = {
    "remote": "SUBMODULE_HELPER_REMOTE",
    "default_branch": "SUBMODULE_HELPER_DEFAULT_BRANCH",
}


def load_config_file(config_file: Path) -> dict[str, str]:
    """Load ``key = value`` settings from a file.

    Supports:
    - Comments starting with #
    - Environment variables: $HOME, ${HOME}, etc.
    - Tilde expansion: ~/path
    """
    values = {}
    try:
        with open(config_file.expanduser()) as f:
            for line in f:
                line = line.strip()
                # Skip empty lines and comments
                if not line or line.startswith("#") or "=" not in line:
                    continue
                key, value = (part.strip() for part in line.split("=", 1))
                values[key] = os.path.expanduser(os.path.expandvars(value))
    except FileNotFoundError:
        pass
    return values


def resolve_config_file() -> Path | None:
    """Auto-resolve config file from environment and standard locations.

    Priority order:
    1. $SUBMODULE_HELPER_CONFIG environment variable
    2. ~/.config/submodule-helper/config (XDG-compliant)
    3. ~/.submodule-helper (legacy fallback)
    """
    env_config = os.environ.get("SUBMODULE_HELPER_CONFIG")
    if env_config:
        env_path = Path(env_config).expanduser()
        if env_path.exists() and env_path.is_file():
            return env_path

    xdg_path = Path.home() / ".config" / "submodule-helper" / "config"
    if xdg_path.exists() and xdg_path.is_file():
        return xdg_path

    legacy_path = Path.home() / ".submodule-helper"
    if legacy_path.exists() and legacy_path.is_file():
        return legacy_path

    return None


def load_config(config_file: Path | None = None) -> HelperConfig:
    """Build settings from the config file, then environment overrides."""
    config = HelperConfig()

    resolved = config_file or resolve_config_file()
    if resolved:
        for key, value in load_config_file(resolved).items():
            if key in CONFIG_ENV_VARS:
                setattr(config, key, value)
            else:
                logger.warning("unknown_config_key", key=key, file=str(resolved))

    for key, env_var in CONFIG_ENV_VARS.items():
        value = os.environ.get(env_var)
        if value:
            setattr(config, key, value)
    return config


# =============================================================================
# CLI Application
# =============================================================================


app = typer.Typer(
    name="submodule-helper",
    help="Checkout, commit and sync a repository together with its submodules.",
    no_args_is_help=True,
)


def version_callback(value: bool):
    """Print version and exit."""
    if value:
        print(f"submodule-helper {__version__}")
        raise typer.Exit()


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
    schema: bool = typer.Option(
        False,
        "--schema",
        help="Output MCP-compatible tool schema for AI agents",
    ),
):
    """submodule-helper: keep a repository and its submodules in step."""
    if schema:
        print(json.dumps(get_tool_schema(), indent=2))
        raise typer.Exit()


def get_console_and_formatter(
    json_output: bool,
) -> tuple[Console, OutputFormatter, ConsoleInteraction]:
    """Create message console, formatter and interaction surface.

    In JSON mode prompts, notices and errors go to stderr so stdout stays
    parseable.
    """
    console = Console(force_terminal=not json_output)
    formatter = OutputFormatter(console, use_json=json_output)
    message_console = Console(stderr=True) if json_output else console
    return message_console, formatter, ConsoleInteraction(message_console)


@contextmanager
def handle_errors(console: Console) -> Iterator[None]:
    """Turn cancellations and failures into exit codes."""
    try:
        yield
    except UserCancelled as e:
        console.print(f"[dim]Cancelled: {e}[/]")
        raise typer.Exit(0)
    except (SubmoduleHelperError, ValueError) as e:
        logger.error("command_failed", error=str(e))
        console.print(f"[red]Error: {e}[/]")
        raise typer.Exit(1)


def _apply_overrides(remote: str | None, default_branch: str | None) -> HelperConfig:
    config = load_config()
    if remote:
        config.remote = remote
    if default_branch:
        config.default_branch = default_branch
    return config


PATH_OPTION_HELP = "Path inside the main repository (default: current directory)"


@app.command()
def checkout(
    branch: str = typer.Argument(
        None,
        help="Branch to check out everywhere (default: pick interactively)",
    ),
    path: Path = typer.Option(None, "--path", "-p", help=PATH_OPTION_HELP),
    remote: str = typer.Option(None, "--remote", help="Remote to look for branches on"),
    default_branch: str = typer.Option(
        None,
        "--default-branch",
        help="Base branch name reported when HEAD is detached",
    ),
    json_output: bool = typer.Option(False, "--json", "-j", help="Output as JSON"),
):
    """Check out a branch in the main repository and every submodule."""
    console, formatter, interaction = get_console_and_formatter(json_output)

    with handle_errors(console):
        config = _apply_overrides(remote, default_branch)
        workspace = open_workspace(path)
        reconciler = BranchReconciler(
            workspace,
            interaction,
            remote=config.remote,
            default_branch=config.default_branch,
        )
        name = branch or reconciler.select_branch()
        results = reconciler.checkout_all(name)

    formatter.print_operation_results(results, "checkout", workspace.root_path)


@app.command()
def commit(
    message: str = typer.Option(
        None,
        "--message",
        "-m",
        help="Commit message (default: prompt for one)",
    ),
    path: Path = typer.Option(None, "--path", "-p", help=PATH_OPTION_HELP),
    dry_run: bool = typer.Option(
        False,
        "--dry-run",
        "-n",
        help="Show what would happen without actually doing it",
    ),
    json_output: bool = typer.Option(False, "--json", "-j", help="Output as JSON"),
):
    """Commit all pending changes in every submodule, then the main repository."""
    console, formatter, interaction = get_console_and_formatter(json_output)

    with handle_errors(console):
        workspace = open_workspace(path)
        if message is None:
            message = interaction.prompt_text("Enter commit message")
            if message is None:
                raise UserCancelled("No commit message entered")
        results = CommitOrchestrator(workspace, interaction).commit_all(message, dry_run=dry_run)

    formatter.print_operation_results(results, "commit", workspace.root_path)


@app.command()
def sync(
    path: Path = typer.Option(None, "--path", "-p", help=PATH_OPTION_HELP),
    fetch: bool = typer.Option(
        False,
        "--fetch",
        "-f",
        help="Fetch each repository before comparing with its upstream",
    ),
    dry_run: bool = typer.Option(
        False,
        "--dry-run",
        "-n",
        help="Show what would happen without actually doing it",
    ),
    json_output: bool = typer.Option(False, "--json", "-j", help="Output as JSON"),
):
    """Pull what is behind and push what is ahead, submodules first."""
    console, formatter, interaction = get_console_and_formatter(json_output)

    with handle_errors(console):
        workspace = open_workspace(path)
        results = SyncOrchestrator(workspace, interaction).sync_all(
            dry_run=dry_run, fetch_first=fetch
        )

    formatter.print_operation_results(results, "sync", workspace.root_path)


@app.command()
def status(
    path: Path = typer.Option(None, "--path", "-p", help=PATH_OPTION_HELP),
    no_fetch: bool = typer.Option(
        False,
        "--no-fetch",
        help="Skip fetching before status check",
    ),
    json_output: bool = typer.Option(False, "--json", "-j", help="Output as JSON"),
):
    """Show status of the main repository and its submodules."""
    console, formatter, _ = get_console_and_formatter(json_output)

    with handle_errors(console):
        workspace = open_workspace(path)
        statuses = workspace.get_all_status(fetch_first=not no_fetch)

    formatter.print_status_list(statuses, workspace.root_path)


@app.command(name="list")
def list_submodules(
    path: Path = typer.Option(None, "--path", "-p", help=PATH_OPTION_HELP),
    json_output: bool = typer.Option(False, "--json", "-j", help="Output as JSON"),
):
    """List the submodules of the main repository."""
    console, formatter, _ = get_console_and_formatter(json_output)

    with handle_errors(console):
        workspace = open_workspace(path)
        submodules = workspace.discover_submodules()

    formatter.print_submodule_list(submodules, workspace.root_path)
