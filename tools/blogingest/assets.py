from __future__ import annotations

import logging
import os
import pathlib
import shutil
import threading
from typing import Optional

from .config import ASSET_DIR_NAME, HERO_IMAGE_SUFFIXES
from .errors import ContentStructureError, IngestCancelled
from .frontmatter import FrontMatter

logger = logging.getLogger(__name__)


def normalize_relative_ref(ref: str) -> str:
    """
    Turn an author-written path (`./assets/a.png`, `\\assets\\a.png`, `/a.png`)
    into a plain forward-slash relative path.
    """
    rel = ref.strip().replace("\\", "/")
    while rel.startswith(("./", "/")):
        rel = rel[2:] if rel.startswith("./") else rel[1:]
    return rel


def is_within(base: pathlib.Path, candidate: pathlib.Path) -> bool:
    try:
        candidate.resolve().relative_to(base.resolve())
    except ValueError:
        return False
    return True


def _hero_from_frontmatter(
    content_root: pathlib.Path, hero: str
) -> Optional[str]:
    rel = normalize_relative_ref(hero)
    if not rel:
        return None
    candidate = content_root / rel
    if not is_within(content_root, candidate):
        logger.debug("hero %r escapes %s, ignoring", hero, content_root)
        return None
    if not candidate.is_file():
        logger.debug("hero %r not found under %s", hero, content_root)
        return None
    return candidate.resolve().relative_to(content_root.resolve()).as_posix()


def _first_asset_image(content_root: pathlib.Path) -> Optional[str]:
    assets = content_root / ASSET_DIR_NAME
    if not assets.is_dir():
        return None
    # lexicographic by file name so the pick does not depend on the OS
    for p in sorted(assets.iterdir(), key=lambda p: p.name):
        if p.is_file() and p.suffix.lower() in HERO_IMAGE_SUFFIXES:
            return f"{ASSET_DIR_NAME}/{p.name}"
    return None


def resolve_hero(
    content_root: pathlib.Path, fm: FrontMatter
) -> Optional[str]:
    """
    Returns the hero image path relative to `content_root`, or None.

    Order:
    - `hero:` from the front matter, if it names an existing file.
    - The first .jpg/.jpeg/.png directly inside assets/, by name.
    """
    if fm.hero:
        rel = _hero_from_frontmatter(content_root, fm.hero)
        if rel:
            return rel
    rel = _first_asset_image(content_root)
    if rel:
        logger.debug("hero falls back to %s", rel)
    return rel


def public_url(
    storage_root: pathlib.Path, public_base: str, absolute_path: pathlib.Path
) -> str:
    root = pathlib.Path(os.path.normpath(storage_root))
    target = pathlib.Path(os.path.normpath(absolute_path))
    try:
        rel = target.relative_to(root)
    except ValueError:
        raise ContentStructureError(
            f"{absolute_path} is not under storage root {storage_root}"
        ) from None
    if not rel.parts:
        raise ContentStructureError(f"{absolute_path} is the storage root itself")
    return f"{public_base.rstrip('/')}/{rel.as_posix()}"


def copy_tree(
    src_dir: pathlib.Path,
    dst_dir: pathlib.Path,
    cancel: Optional[threading.Event] = None,
) -> int:
    """
    Copy every directory and regular file below `src_dir` into the
    existing `dst_dir`, keeping relative paths. Returns the file count.
    """
    copied = 0
    for s in sorted(src_dir.rglob("*")):
        if cancel is not None and cancel.is_set():
            raise IngestCancelled("cancelled while copying content")
        if s.is_symlink():
            continue
        d = dst_dir / s.relative_to(src_dir)
        if s.is_dir():
            d.mkdir(parents=True, exist_ok=True)
        elif s.is_file():
            d.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(s, d)
            copied += 1
    return copied


def assets_relative_path(post_dir: pathlib.Path) -> str:
    return ASSET_DIR_NAME if (post_dir / ASSET_DIR_NAME).is_dir() else ""
