from __future__ import annotations

import logging
import pathlib
import shutil
from typing import Tuple

from .assets import is_within
from .config import MAX_SLUG_LENGTH, StorageConfig
from .errors import StorageError
from .utils import is_valid_slug, slugify

logger = logging.getLogger(__name__)

MAX_SLUG_ATTEMPTS = 10_000


def post_folder(config: StorageConfig, slug: str) -> pathlib.Path:
    """
    Absolute folder for `slug`, refusing anything that would land outside
    the posts directory.
    """
    folder = config.post_folder(slug)
    if (
        not slug
        or folder.parent != config.posts_root
        or not is_within(config.posts_root, folder)
    ):
        raise StorageError(f"slug {slug!r} escapes {config.posts_root}", slug=slug)
    return folder


def allocate_slug(config: StorageConfig, candidate: str) -> Tuple[str, pathlib.Path]:
    """
    Reserve `posts/<candidate>`, or the first free `<candidate>-N`.

    The reservation is the directory itself: mkdir either creates it or
    fails with FileExistsError, so two concurrent uploads can never both
    win the same name.
    """
    base = candidate if is_valid_slug(candidate) else slugify(candidate)
    base = base[:MAX_SLUG_LENGTH].rstrip("-")
    try:
        config.ensure_layout()
    except OSError as e:
        raise StorageError(f"cannot create {config.posts_root}: {e}") from e

    for n in range(MAX_SLUG_ATTEMPTS):
        slug = base if n == 0 else f"{base}-{n}"
        dest = post_folder(config, slug)
        try:
            dest.mkdir()
        except FileExistsError:
            logger.debug("slug %s taken, trying next", slug)
            continue
        except OSError as e:
            raise StorageError(f"cannot reserve {dest}: {e}", slug=slug) from e
        return slug, dest

    raise StorageError(
        f"no free slug for {base!r} after {MAX_SLUG_ATTEMPTS} attempts"
    )


def remove_tree(path: pathlib.Path) -> bool:
    """Cleanup helper: failures are logged, never raised."""
    try:
        shutil.rmtree(path)
    except FileNotFoundError:
        return False
    except OSError as e:
        logger.warning("could not remove %s: %s", path, e)
        return False
    return True


def delete_content(config: StorageConfig, slug: str) -> bool:
    """Remove a post folder. Returns whether it existed."""
    folder = post_folder(config, slug)
    if not folder.is_dir():
        return False
    try:
        shutil.rmtree(folder)
    except FileNotFoundError:
        return False
    except OSError as e:
        raise StorageError(f"cannot delete {folder}: {e}", slug=slug) from e
    logger.info("deleted post folder %s", folder)
    return True
