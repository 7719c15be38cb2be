"""Tests for submodule registry parsing and discovery."""

from pathlib import Path

from submodule_helper.core import GitRepository, find_submodules, parse_submodule_status

from .conftest import init_repo

ROOT = Path("/work/project")


class TestParseSubmoduleStatus:
    def test_single_line_with_descriptor(self):
        [sub] = parse_submodule_status(" abc1234 libs/foo (heads/main)", ROOT)

        assert sub.relative_path == "libs/foo"
        assert sub.absolute_path == ROOT / "libs" / "foo"
        assert sub.commit == "abc1234"
        assert sub.status_flag == " "
        assert sub.descriptor == "heads/main"

    def test_empty_text_yields_nothing(self):
        assert parse_submodule_status("", ROOT) == []

    def test_blank_lines_skipped_and_order_kept(self):
        text = "\n abc1234 b-lib (heads/main)\n\n def5678 a-lib\n   \n"

        subs = parse_submodule_status(text, ROOT)

        assert [s.relative_path for s in subs] == ["b-lib", "a-lib"]
        assert subs[1].descriptor == ""

    def test_status_flags(self):
        text = "\n".join(
            [
                "+abc1234 modified (heads/main)",
                "-def5678 missing",
                "U0123456 conflicted (v1.0)",
            ]
        )

        subs = parse_submodule_status(text, ROOT)

        assert [s.status_flag for s in subs] == ["+", "-", "U"]
        assert [s.relative_path for s in subs] == ["modified", "missing", "conflicted"]
        assert subs[1].is_initialized is False
        assert subs[0].is_initialized is True

    def test_path_with_spaces(self):
        [sub] = parse_submodule_status(" abc1234 vendor/my lib (heads/main)", ROOT)

        assert sub.relative_path == "vendor/my lib"
        assert sub.descriptor == "heads/main"

    def test_stripped_leading_space_still_parses(self):
        [sub] = parse_submodule_status("abc1234 libs/foo (heads/main)", ROOT)

        assert sub.commit == "abc1234"
        assert sub.relative_path == "libs/foo"

    def test_to_dict(self):
        [sub] = parse_submodule_status("-abc1234 libs/foo", ROOT)

        data = sub.to_dict()

        assert data["absolute_path"] == str(ROOT / "libs" / "foo")
        assert data["is_initialized"] is False


class TestFindSubmodules:
    def test_registered_submodules(self, git_tree):
        subs = find_submodules(GitRepository(git_tree))

        assert [s.relative_path for s in subs] == ["libs/lib-a", "libs/lib-b"]
        assert all(s.absolute_path.is_dir() for s in subs)

    def test_repository_without_submodules(self, tmp_path, git_env):
        repo = init_repo(tmp_path / "plain", {"a.txt": "a\n"})

        assert find_submodules(GitRepository(repo)) == []

    def test_unreadable_registry_is_empty(self, tmp_path, git_env):
        not_a_repo = tmp_path / "nothing"
        not_a_repo.mkdir()

        assert find_submodules(GitRepository(not_a_repo)) == []
