"""End-to-end fetches against a local repository with the real git binary."""

from __future__ import annotations

import shutil
import subprocess
from pathlib import Path

import pytest

from repofetch.errors import ProcessExitError, SubdirectoryNotFoundError
from repofetch.fetch.git_fetcher import GitFetcher

pytestmark = pytest.mark.skipif(shutil.which("git") is None, reason="git is not installed")

GIT_IDENTITY = [
    "-c",
    "user.name=repofetch",
    "-c",
    "user.email=repofetch@example.com",
    "-c",
    "commit.gpgsign=false",
    "-c",
    "tag.gpgsign=false",
]


def git(repo: Path, *args: str) -> None:
    subprocess.run(["git", *GIT_IDENTITY, *args], cwd=repo, check=True, capture_output=True)


@pytest.fixture
def origin(tmp_path: Path) -> str:
    """Repository with a tag on the default branch and a second branch."""
    repo = tmp_path / "origin"
    (repo / "templates" / "python" / "src").mkdir(parents=True)
    (repo / "templates" / "python" / "README.md").write_text("python template\n")
    (repo / "templates" / "python" / "src" / "app.py").write_text("print('hi')\n")
    (repo / "templates" / "go").mkdir()
    (repo / "templates" / "go" / "main.go").write_text("package main\n")
    (repo / "top.txt").write_text("top\n")

    git(repo, "init", "-q")
    git(repo, "add", ".")
    git(repo, "commit", "-q", "-m", "initial")
    git(repo, "tag", "v1.0.0")
    git(repo, "checkout", "-q", "-b", "feature")
    (repo / "feature.txt").write_text("feature\n")
    git(repo, "add", ".")
    git(repo, "commit", "-q", "-m", "feature")
    git(repo, "checkout", "-q", "-")
    return repo.as_uri()


def test_fetch_default_branch(origin: str, tmp_path: Path) -> None:
    """An empty ref checks out the remote's default branch."""
    dest = tmp_path / "dest"

    GitFetcher().fetch(origin, "", dest)

    assert (dest / "top.txt").read_text() == "top\n"
    assert (dest / ".git").is_dir()
    assert not (dest / "feature.txt").exists()


@pytest.mark.parametrize("ref, present", [("feature", "feature.txt"), ("v1.0.0", "top.txt")])
def test_fetch_named_ref(origin: str, tmp_path: Path, ref: str, present: str) -> None:
    """Branches and tags are both accepted as refs."""
    dest = tmp_path / "dest"

    GitFetcher().fetch(origin, ref, dest)

    assert (dest / present).exists()


def test_fetch_unknown_ref_fails(origin: str, tmp_path: Path) -> None:
    """A ref git cannot resolve surfaces as a clone failure."""
    with pytest.raises(ProcessExitError) as excinfo:
        GitFetcher().fetch(origin, "no-such-branch", tmp_path / "dest")

    assert excinfo.value.phase == "clone"
    assert "git checkout exited" in str(excinfo.value)


def test_fetch_subdirectory_extracts_only_the_subtree(origin: str, tmp_path: Path) -> None:
    """A sparse fetch leaves exactly the requested tree and no git metadata."""
    dest = tmp_path / "project"

    GitFetcher().fetch_subdirectory(origin, "", "templates/python", dest)

    files = sorted(p.relative_to(dest).as_posix() for p in dest.rglob("*"))
    assert files == ["README.md", "src", "src/app.py"]


def test_fetch_subdirectory_missing_tree(origin: str, tmp_path: Path) -> None:
    """A subdirectory absent from the ref is reported as not found."""
    with pytest.raises(SubdirectoryNotFoundError):
        GitFetcher().fetch_subdirectory(origin, "", "templates/rust", tmp_path / "project")
