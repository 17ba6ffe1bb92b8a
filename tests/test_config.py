"""Tests for StorageConfig and YAML/env loading."""

from pathlib import Path

import pytest

from blogingest.config import (
    ENV_PUBLIC_BASE,
    ENV_STORAGE_ROOT,
    StorageConfig,
    load_config,
    resolve_storage_root,
)
from blogingest.errors import ValidationError


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    monkeypatch.delenv(ENV_STORAGE_ROOT, raising=False)
    monkeypatch.delenv(ENV_PUBLIC_BASE, raising=False)


class TestStorageConfig:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("/static", "/static"),
            ("static", "/static"),
            ("/static/", "/static"),
            ("//media//", "/media"),
            ("/blog/files", "/blog/files"),
            ("", "/static"),
            ("/", "/static"),
        ],
    )
    def test_prefix_normalisation(self, tmp_path: Path, raw: str, expected: str):
        config = StorageConfig(storage_root=tmp_path, public_base_prefix=raw)
        assert config.public_base_prefix == expected

    def test_relative_root_rejected(self):
        with pytest.raises(ValueError):
            StorageConfig(storage_root=Path("relative/dir"))

    def test_is_frozen(self, tmp_path: Path):
        config = StorageConfig(storage_root=tmp_path)
        with pytest.raises(ValueError):
            config.public_base_prefix = "/other"  # type: ignore[misc]

    def test_paths(self, tmp_path: Path):
        config = StorageConfig(storage_root=tmp_path)
        assert config.posts_root == tmp_path / "posts"
        assert config.post_folder("a") == tmp_path / "posts" / "a"
        config.ensure_layout()
        assert config.posts_root.is_dir()


class TestResolveStorageRoot:
    @pytest.mark.parametrize(
        "configured", ["${CONTENT_ROOT}/data", "%CONTENT_ROOT%/data", "{CONTENT_ROOT}/data", "data"]
    )
    def test_anchored_at_content_root(self, tmp_path: Path, configured: str):
        assert resolve_storage_root(configured, tmp_path) == (tmp_path / "data").resolve()

    def test_absolute_kept(self, tmp_path: Path):
        target = tmp_path / "abs"
        assert resolve_storage_root(str(target), Path("/elsewhere")) == target.resolve()


class TestLoadConfig:
    def test_from_yaml(self, tmp_path: Path):
        cfg = tmp_path / "blog-ingest.yml"
        cfg.write_text("storage_root: content\npublic_base_prefix: media/\n")
        config = load_config(cfg)
        assert config.storage_root == (tmp_path / "content").resolve()
        assert config.public_base_prefix == "/media"

    def test_limits_from_yaml(self, tmp_path: Path):
        cfg = tmp_path / "blog-ingest.yml"
        cfg.write_text("storage_root: c\nmax_archive_bytes: 1024\n")
        assert load_config(cfg).max_archive_bytes == 1024

    def test_env_overrides_file(self, tmp_path: Path, monkeypatch):
        cfg = tmp_path / "blog-ingest.yml"
        cfg.write_text("storage_root: from-file\n")
        monkeypatch.setenv(ENV_STORAGE_ROOT, str(tmp_path / "from-env"))
        monkeypatch.setenv(ENV_PUBLIC_BASE, "/env")
        config = load_config(cfg)
        assert config.storage_root == (tmp_path / "from-env").resolve()
        assert config.public_base_prefix == "/env"

    def test_missing_file_uses_env(self, tmp_path: Path, monkeypatch):
        monkeypatch.setenv(ENV_STORAGE_ROOT, str(tmp_path / "root"))
        config = load_config(tmp_path / "absent.yml")
        assert config.storage_root == (tmp_path / "root").resolve()
        assert config.public_base_prefix == "/static"

    def test_default_location(self, tmp_path: Path, monkeypatch):
        (tmp_path / "blog-ingest.yml").write_text("storage_root: here\n")
        monkeypatch.chdir(tmp_path)
        assert load_config().storage_root == (tmp_path / "here").resolve()

    def test_missing_root_is_validation_error(self, tmp_path: Path):
        with pytest.raises(ValidationError):
            load_config(tmp_path / "absent.yml")

    def test_non_mapping_is_validation_error(self, tmp_path: Path):
        cfg = tmp_path / "blog-ingest.yml"
        cfg.write_text("- just\n- a list\n")
        with pytest.raises(ValidationError):
            load_config(cfg)

    def test_broken_yaml_is_validation_error(self, tmp_path: Path):
        cfg = tmp_path / "blog-ingest.yml"
        cfg.write_text("storage_root: [unclosed\n")
        with pytest.raises(ValidationError):
            load_config(cfg)

    def test_bad_value_is_validation_error(self, tmp_path: Path):
        cfg = tmp_path / "blog-ingest.yml"
        cfg.write_text("storage_root: c\nmax_archive_bytes: lots\n")
        with pytest.raises(ValidationError):
            load_config(cfg)
