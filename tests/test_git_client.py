import os
import shutil

import pytest

from docsync.infrastructure.git_client import GitClient

pytestmark = pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")


@pytest.fixture()
def git_env(monkeypatch) -> None:
    for key in ("GIT_AUTHOR_NAME", "GIT_COMMITTER_NAME"):
        monkeypatch.setenv(key, "docsync")
    for key in ("GIT_AUTHOR_EMAIL", "GIT_COMMITTER_EMAIL"):
        monkeypatch.setenv(key, "docsync@example.com")


def _write(repo: str, name: str, content: str) -> None:
    with open(os.path.join(repo, name), "w", encoding="utf-8") as f:
        f.write(content)


class TestGitClient:
    @pytest.mark.asyncio
    async def test_commit_should_record_revision(self, repo_path: str, git_env) -> None:
        git = GitClient(repo_path)
        assert await git.ensure_repository() is True
        _write(repo_path, "a.md", "# A")

        assert await git.commit("a.md", "Update a.md") is True
        revision = await git.revision("a.md")

        assert revision is not None
        assert len(revision) == 40

    @pytest.mark.asyncio
    async def test_revision_should_be_none_for_untracked_file(
        self, repo_path: str, git_env
    ) -> None:
        git = GitClient(repo_path)
        await git.ensure_repository()

        assert await git.revision("never.md") is None

    @pytest.mark.asyncio
    async def test_remove_should_commit_deletion(self, repo_path: str, git_env) -> None:
        git = GitClient(repo_path)
        await git.ensure_repository()
        _write(repo_path, "a.md", "# A")
        await git.commit("a.md", "Update a.md")
        first = await git.revision("a.md")
        os.remove(os.path.join(repo_path, "a.md"))

        assert await git.remove("a.md", "Delete a.md") is True
        assert await git.revision("a.md") != first

    @pytest.mark.asyncio
    async def test_failed_commit_should_return_false(self, repo_path: str, git_env) -> None:
        git = GitClient(repo_path)
        await git.ensure_repository()

        assert await git.commit("missing.md", "Update missing.md") is False

    @pytest.mark.asyncio
    async def test_disabled_client_should_do_nothing(self, repo_path: str) -> None:
        git = GitClient(repo_path, enabled=False)

        assert await git.ensure_repository() is False
        assert await git.commit("a.md", "msg") is False
        assert await git.revision("a.md") is None
        assert not os.path.exists(os.path.join(repo_path, ".git"))
