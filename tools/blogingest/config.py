#!/usr/bin/env python3
from __future__ import annotations

import logging
import os
import pathlib
import re
from typing import Any, Dict, Optional

import yaml
from pydantic import BaseModel, ConfigDict, field_validator

from .errors import ValidationError

logger = logging.getLogger(__name__)

# ---------- Layout

ENTRY_DOCUMENT = "index.mdx"
ARCHIVE_SUFFIX = ".zip"
POSTS_DIR_NAME = "posts"
ASSET_DIR_NAME = "assets"
HERO_IMAGE_SUFFIXES = (".jpg", ".jpeg", ".png")
WORKSPACE_PREFIX = "blog-upload-"
UPLOAD_FILENAME = "upload.zip"
IGNORED_TOP_LEVEL = ("__MACOSX",)

# ---------- Limits

DEFAULT_PUBLIC_BASE = "/static"
DEFAULT_MAX_ARCHIVE_BYTES = 100 * 1024 * 1024
DEFAULT_MAX_EXTRACTED_BYTES = 512 * 1024 * 1024
MAX_ARCHIVE_MEMBERS = 10_000
# leaves room for a -N suffix under the usual 255 byte name limit
MAX_SLUG_LENGTH = 200
COPY_CHUNK_SIZE = 1024 * 1024

# ---------- Config file

CONFIG_FILENAME = "blog-ingest.yml"
ENV_STORAGE_ROOT = "BLOG_INGEST_STORAGE_ROOT"
ENV_PUBLIC_BASE = "BLOG_INGEST_PUBLIC_BASE"
CONTENT_ROOT_PLACEHOLDERS = ("${CONTENT_ROOT}", "%CONTENT_ROOT%", "{CONTENT_ROOT}")

# Some shared regexes

SLUG_RE = re.compile(r"[^a-z0-9-]+")
VALID_SLUG = re.compile(r"^[a-z0-9]+(-[a-z0-9]+)*$")
DELIMITER = "---"
INLINE_LIST = re.compile(r"\[([^\[\]]*)\]")
DRIVE_PREFIX = re.compile(r"^[a-zA-Z]:")


class StorageConfig(BaseModel):
    """Where ingested content lives on disk and how it is served."""

    model_config = ConfigDict(frozen=True)

    storage_root: pathlib.Path
    public_base_prefix: str = DEFAULT_PUBLIC_BASE
    max_archive_bytes: int = DEFAULT_MAX_ARCHIVE_BYTES
    max_extracted_bytes: int = DEFAULT_MAX_EXTRACTED_BYTES

    @field_validator("storage_root")
    @classmethod
    def _absolute_root(cls, v: pathlib.Path) -> pathlib.Path:
        if not v.is_absolute():
            raise ValueError(f"storage_root must be absolute: {v}")
        return pathlib.Path(os.path.normpath(v))

    @field_validator("public_base_prefix")
    @classmethod
    def _normalize_prefix(cls, v: str) -> str:
        v = (v or "").strip()
        if not v.strip("/"):
            return DEFAULT_PUBLIC_BASE
        return "/" + v.strip("/")

    @property
    def posts_root(self) -> pathlib.Path:
        return self.storage_root / POSTS_DIR_NAME

    def post_folder(self, slug: str) -> pathlib.Path:
        return self.posts_root / slug

    def ensure_layout(self) -> None:
        self.posts_root.mkdir(parents=True, exist_ok=True)


def resolve_storage_root(configured: str, content_root: pathlib.Path) -> pathlib.Path:
    """
    Expand CONTENT_ROOT placeholders and anchor relative paths at
    `content_root`.
    """
    path = configured or ""
    for token in CONTENT_ROOT_PLACEHOLDERS:
        path = path.replace(token, str(content_root))
    p = pathlib.Path(path).expanduser()
    if not p.is_absolute():
        p = content_root / p
    return p.resolve()


def read_yaml(path: pathlib.Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    try:
        return yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ValidationError(f"unreadable config {path}: {e}") from e


def _apply_env(data: Dict[str, Any]) -> Dict[str, Any]:
    data = dict(data)
    if os.environ.get(ENV_STORAGE_ROOT):
        data["storage_root"] = os.environ[ENV_STORAGE_ROOT]
    if os.environ.get(ENV_PUBLIC_BASE):
        data["public_base_prefix"] = os.environ[ENV_PUBLIC_BASE]
    return data


def load_config(path: Optional[pathlib.Path] = None) -> StorageConfig:
    """
    Load storage settings from YAML, then overlay environment variables.

    Without an explicit path, `blog-ingest.yml` in the current directory is
    used if present. Relative storage roots resolve against the directory
    holding the config file.
    """
    cfg_path = pathlib.Path(path) if path else pathlib.Path.cwd() / CONFIG_FILENAME
    if not cfg_path.exists():
        logger.warning("Config file not found: %s", cfg_path)
    data = read_yaml(cfg_path)
    if not isinstance(data, dict):
        raise ValidationError(f"config must be a mapping: {cfg_path}")
    data = _apply_env(data)

    configured = data.get("storage_root")
    if not configured:
        raise ValidationError(
            f"storage_root missing (set it in {cfg_path.name} or ${ENV_STORAGE_ROOT})"
        )
    content_root = cfg_path.resolve().parent
    data["storage_root"] = resolve_storage_root(str(configured), content_root)

    try:
        return StorageConfig.model_validate(data)
    except ValueError as e:
        raise ValidationError(f"invalid config {cfg_path}: {e}") from e
