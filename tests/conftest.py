"""Shared test fixtures for submodule-helper.

Two kinds of trees: ``fake_tree`` wires repository handles to in-memory
engines that record every call; ``git_tree`` builds real repositories with
bare remotes and submodules under tmp_path.
"""

from __future__ import annotations

import subprocess
from dataclasses import dataclass
from pathlib import Path

import pytest

from submodule_helper.core import GitRepository, SubmoduleWorkspace

# ---------------------------------------------------------------------------
# Fake engine
# ---------------------------------------------------------------------------


def porcelain(
    branch: str = "main",
    upstream: str | None = "origin/main",
    ahead: int = 0,
    behind: int = 0,
    staged: int = 0,
    modified: int = 0,
    untracked: int = 0,
) -> str:
    """Build 'git status --porcelain=v2 --branch' output."""
    lines = ["# branch.oid 0123456789abcdef", f"# branch.head {branch}"]
    if upstream:
        lines.append(f"# branch.upstream {upstream}")
        lines.append(f"# branch.ab +{ahead} -{behind}")
    for i in range(staged):
        lines.append(f"1 M. N... 100644 100644 100644 aaaaaaa bbbbbbb staged_{i}.txt")
    for i in range(modified):
        lines.append(f"1 .M N... 100644 100644 100644 aaaaaaa aaaaaaa modified_{i}.txt")
    for i in range(untracked):
        lines.append(f"? untracked_{i}.txt")
    return "\n".join(lines)


class FakeOperations:
    """Stands in for GitOperations. Appends (repo, op, *args) to a shared log."""

    def __init__(
        self,
        path: Path,
        log: list,
        *,
        status: str | None = None,
        after_pull_status: str | None = None,
        local: tuple[str, ...] = ("main",),
        remote: tuple[str, ...] = ("origin/HEAD", "origin/main"),
        current: str | None = "main",
        fail: tuple[str, ...] = (),
    ):
        self.path = path
        self.log = log
        self.status_output = status if status is not None else porcelain()
        self.after_pull_status = after_pull_status
        self.local = list(local)
        self.remote = list(remote)
        self.current = current
        self.fail = set(fail)
        self.submodule_text = ""

    def _record(self, op: str, *args: str) -> tuple[bool, str]:
        self.log.append((self.path.name, op, *args))
        if op in self.fail:
            return False, f"fatal: {op} failed"
        return True, ""

    def get_toplevel(self) -> tuple[bool, str]:
        if "toplevel" in self.fail:
            return False, "fatal: not a git repository"
        return True, str(self.path)

    def status_porcelain(self) -> tuple[bool, str]:
        success, error = self._record("status")
        return (True, self.status_output) if success else (False, error)

    def get_current_branch(self) -> tuple[bool, str]:
        return True, self.current or "HEAD"

    def list_branches(self, remote: bool = False) -> tuple[bool, str]:
        return True, "\n".join(self.remote if remote else self.local)

    def switch(self, name: str) -> tuple[bool, str]:
        result = self._record("switch", name)
        if result[0]:
            if name not in self.local:
                return False, f"fatal: invalid reference: {name}"
            self.current = name
        return result

    def switch_tracking(self, name: str, remote_ref: str) -> tuple[bool, str]:
        result = self._record("switch_tracking", name, remote_ref)
        if result[0]:
            self.local.append(name)
            self.current = name
        return result

    def switch_create(self, name: str) -> tuple[bool, str]:
        result = self._record("switch_create", name)
        if result[0]:
            self.local.append(name)
            self.current = name
        return result

    def stage_all(self) -> tuple[bool, str]:
        return self._record("stage_all")

    def commit(self, message: str) -> tuple[bool, str]:
        return self._record("commit", message)

    def fetch_all(self) -> tuple[bool, str]:
        return self._record("fetch")

    def pull(self) -> tuple[bool, str]:
        result = self._record("pull")
        if result[0] and self.after_pull_status is not None:
            self.status_output = self.after_pull_status
        return result

    def push(self) -> tuple[bool, str]:
        return self._record("push")

    def submodule_status(self) -> tuple[bool, str]:
        return True, self.submodule_text


class RecordingInteraction:
    """Interaction surface that answers prompts from a script."""

    def __init__(self, choice=None):
        self.choice = choice
        self.offered = None
        self.infos = []
        self.errors = []
        self.progress = []

    def prompt_text(self, prompt):
        return None

    def prompt_choice(self, items, matches=None):
        self.offered = list(items)
        return self.choice

    def report_progress(self, title, step, total):
        self.progress.append((step, total))

    def notify_info(self, message):
        self.infos.append(message)

    def notify_error(self, message):
        self.errors.append(message)


@dataclass
class FakeTree:
    workspace: SubmoduleWorkspace
    ops: dict[str, FakeOperations]
    log: list

    def calls(self, op: str) -> list[str]:
        """Names of repositories that received ``op``, in order."""
        return [entry[0] for entry in self.log if entry[1] == op]


@pytest.fixture
def fake_tree(tmp_path):
    """Factory: fake_tree(main={...}, subs={"alpha": {...}, ...}).

    The main repository is named "main"; submodules live at libs/<name>.
    """

    def build(main: dict | None = None, subs: dict[str, dict] | None = None) -> FakeTree:
        log: list = []
        root = tmp_path / "main"
        by_path = {root: FakeOperations(root, log, **(main or {}))}
        lines = []
        for name, kwargs in (subs or {}).items():
            path = root / "libs" / name
            by_path[path] = FakeOperations(path, log, **kwargs)
            lines.append(f" 1234567abcdef libs/{name} (heads/main)")
        by_path[root].submodule_text = "\n".join(lines)

        workspace = SubmoduleWorkspace(
            root, repo_factory=lambda p: GitRepository(p, ops=by_path[p])
        )
        return FakeTree(workspace, {p.name: ops for p, ops in by_path.items()}, log)

    return build


# ---------------------------------------------------------------------------
# Real git repositories
# ---------------------------------------------------------------------------


def run_git(*args: str, cwd: Path) -> str:
    """Run git, failing the test on error."""
    result = subprocess.run(
        ["git", *args], cwd=cwd, capture_output=True, text=True, check=True
    )
    return result.stdout.strip()


def init_repo(path: Path, files: dict[str, str]) -> Path:
    path.mkdir(parents=True)
    run_git("init", "-b", "main", cwd=path)
    for name, content in files.items():
        (path / name).write_text(content)
    run_git("add", "--all", cwd=path)
    run_git("commit", "-m", "init", cwd=path)
    return path


@pytest.fixture
def git_env(tmp_path, monkeypatch):
    """Isolate git from the user's configuration."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    monkeypatch.setenv("GIT_AUTHOR_NAME", "test")
    monkeypatch.setenv("GIT_AUTHOR_EMAIL", "test@example.com")
    monkeypatch.setenv("GIT_COMMITTER_NAME", "test")
    monkeypatch.setenv("GIT_COMMITTER_EMAIL", "test@example.com")
    # Local file:// submodule URLs are refused by default since git 2.38.1
    monkeypatch.setenv("GIT_CONFIG_COUNT", "1")
    monkeypatch.setenv("GIT_CONFIG_KEY_0", "protocol.file.allow")
    monkeypatch.setenv("GIT_CONFIG_VALUE_0", "always")
    for var in ("SUBMODULE_HELPER_CONFIG", "SUBMODULE_HELPER_REMOTE", "SUBMODULE_HELPER_DEFAULT_BRANCH"):
        monkeypatch.delenv(var, raising=False)
    return home


@pytest.fixture
def git_tree(tmp_path, git_env):
    """Clone of a main repository with submodules libs/lib-a and libs/lib-b.

    Every repository has a bare remote under tmp_path/remotes and is on
    ``main`` tracking ``origin/main``.
    """
    remotes = tmp_path / "remotes"
    for name in ("main", "lib-a", "lib-b"):
        seed = init_repo(tmp_path / "seed" / name, {"README.md": f"# {name}\n"})
        run_git("clone", "--bare", str(seed), str(remotes / f"{name}.git"), cwd=tmp_path)

    work = tmp_path / "work"
    run_git("clone", str(remotes / "main.git"), str(work), cwd=tmp_path)
    for name in ("lib-a", "lib-b"):
        run_git("submodule", "add", str(remotes / f"{name}.git"), f"libs/{name}", cwd=work)
    run_git("commit", "-m", "add submodules", cwd=work)
    run_git("push", cwd=work)
    return work
