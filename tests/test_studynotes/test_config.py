"""Unit tests for studynotes.config."""

import textwrap
from pathlib import Path

import pytest

from studynotes.config import Settings, load_settings
from studynotes.exceptions import ConfigError


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for var in (
        "STUDYNOTES_DB",
        "STUDYNOTES_GITHUB_OWNER",
        "STUDYNOTES_GITHUB_REPO",
        "STUDYNOTES_GITHUB_BRANCH",
        "STUDYNOTES_GITHUB_PATH",
        "STUDYNOTES_GITHUB_TOKEN",
        "STUDYNOTES_GITHUB_API",
    ):
        monkeypatch.delenv(var, raising=False)


def _write(tmp_path: Path, content: str) -> Path:
    path = tmp_path / "studynotes.yaml"
    path.write_text(textwrap.dedent(content), encoding="utf-8")
    return path


class TestLoadSettings:
    def test_defaults(self):
        s = load_settings()
        assert s == Settings()
        assert s.branch == "gh-pages"
        assert s.path == "data/notes.json"

    def test_yaml_file(self, tmp_path: Path):
        path = _write(tmp_path, """\
            owner: alice
            repo: notes
            timeout: 3
            pull_on_start: true
        """)
        s = load_settings(path)
        assert (s.owner, s.repo) == ("alice", "notes")
        assert s.timeout == 3.0
        assert s.pull_on_start is True

    def test_nested_section(self, tmp_path: Path):
        path = _write(tmp_path, """\
            studynotes:
              repo: nested
            other_tool:
              repo: ignored
        """)
        assert load_settings(path).repo == "nested"

    def test_unknown_keys_ignored(self, tmp_path: Path):
        path = _write(tmp_path, "colour: blue\nrepo: r\n")
        assert load_settings(path).repo == "r"

    def test_env_beats_file(self, tmp_path: Path, monkeypatch):
        path = _write(tmp_path, "owner: from-file\n")
        monkeypatch.setenv("STUDYNOTES_GITHUB_OWNER", "from-env")
        assert load_settings(path).owner == "from-env"

    def test_overrides_beat_env(self, monkeypatch):
        monkeypatch.setenv("STUDYNOTES_GITHUB_TOKEN", "env-token")
        assert load_settings(token="kw-token").token == "kw-token"

    def test_none_override_ignored(self, monkeypatch):
        monkeypatch.setenv("STUDYNOTES_GITHUB_REPO", "env-repo")
        assert load_settings(repo=None).repo == "env-repo"

    def test_db_path_expanded(self):
        s = load_settings(db_path="~/notes.duckdb")
        assert not s.db_path.startswith("~")

    def test_remote_config(self):
        cfg = load_settings(owner="o", repo="r", token="t").remote_config()
        assert cfg.credential == "t"
        assert cfg.is_configured
        assert cfg.version is None


class TestErrors:
    def test_invalid_yaml(self, tmp_path: Path):
        path = _write(tmp_path, "owner: [unclosed\n")
        with pytest.raises(ConfigError):
            load_settings(path)

    def test_not_a_mapping(self, tmp_path: Path):
        path = _write(tmp_path, "- a\n- b\n")
        with pytest.raises(ConfigError):
            load_settings(path)

    def test_missing_file(self, tmp_path: Path):
        with pytest.raises(ConfigError):
            load_settings(tmp_path / "absent.yaml")
