from __future__ import annotations

import asyncio
import concurrent.futures
import logging
import pathlib
import threading
from dataclasses import dataclass, field
from typing import Optional

from .archive import extraction_workspace, locate_content_root, unpack_upload
from .assets import (
    assets_relative_path,
    copy_tree,
    public_url,
    resolve_hero,
)
from .config import ARCHIVE_SUFFIX, ENTRY_DOCUMENT, StorageConfig
from .errors import (
    ContentStructureError,
    IngestCancelled,
    IngestError,
    StorageError,
    ValidationError,
)
from .frontmatter import FrontMatter, parse_frontmatter
from .storage import allocate_slug, delete_content, post_folder, remove_tree
from .utils import slugify

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PostContentRecord:
    slug: str
    root_path: pathlib.Path
    index_document_path: pathlib.Path
    hero_relative_path: Optional[str] = None
    assets_relative_path: str = ""
    front_matter: FrontMatter = field(default_factory=FrontMatter)


@dataclass(frozen=True)
class UploadSummary:
    slug: str
    title: str
    summary: str
    content_url: str
    hero_url: Optional[str]
    front_matter: FrontMatter


def _check_cancel(cancel: Optional[threading.Event], step: str) -> None:
    if cancel is not None and cancel.is_set():
        raise IngestCancelled(f"ingestion cancelled before {step}")


def validate_upload(
    data: bytes, declared_filename: str, max_bytes: int
) -> None:
    if not data:
        raise ValidationError("Upload a non-empty .zip file.")
    if not (declared_filename or "").lower().endswith(ARCHIVE_SUFFIX):
        raise ValidationError(f"Only {ARCHIVE_SUFFIX} is supported.")
    if len(data) > max_bytes:
        raise ValidationError(
            f"archive is {len(data)} bytes (limit {max_bytes})"
        )


class ContentIngestor:
    """
    Turns uploaded zip archives into post folders under
    `<storage_root>/posts/<slug>/` and maps stored files to public URLs.

    One instance can serve concurrent uploads: every call works in its
    own temp directory and slugs are reserved with an atomic mkdir.
    """

    def __init__(self, config: StorageConfig) -> None:
        self.config = config
        try:
            config.ensure_layout()
        except OSError as e:
            raise StorageError(f"cannot create {config.posts_root}: {e}") from e

    def ingest(
        self,
        data: bytes,
        declared_filename: str,
        preferred_slug: Optional[str] = None,
        cancel: Optional[threading.Event] = None,
    ) -> PostContentRecord:
        validate_upload(data, declared_filename, self.config.max_archive_bytes)

        with extraction_workspace() as workspace:
            _check_cancel(cancel, "extraction")
            tree = unpack_upload(
                workspace, data, self.config.max_extracted_bytes, cancel
            )

            _check_cancel(cancel, "locating content")
            source_root = locate_content_root(tree)

            _check_cancel(cancel, "slug allocation")
            hint = (preferred_slug or "").strip()
            if not hint and source_root != tree:
                hint = source_root.name
            slug, dest = allocate_slug(self.config, slugify(hint))

            try:
                record = self._place(slug, source_root, dest, cancel)
            except BaseException:
                remove_tree(dest)
                raise

        logger.info(
            "ingested %s into %s (hero: %s)",
            declared_filename,
            record.root_path,
            record.hero_relative_path or "none",
        )
        return record

    def _place(
        self,
        slug: str,
        source_root: pathlib.Path,
        dest: pathlib.Path,
        cancel: Optional[threading.Event],
    ) -> PostContentRecord:
        try:
            _check_cancel(cancel, "copying content")
            copy_tree(source_root, dest, cancel)

            _check_cancel(cancel, "metadata parsing")
            index_doc = dest / ENTRY_DOCUMENT
            if not index_doc.is_file():
                raise ContentStructureError(
                    f"{ENTRY_DOCUMENT} missing after extraction."
                )
            text = index_doc.read_text(encoding="utf-8", errors="replace")
            fm = parse_frontmatter(text)

            _check_cancel(cancel, "hero resolution")
            hero = resolve_hero(dest, fm)
        except IngestError as e:
            e.slug = e.slug or slug
            raise
        except OSError as e:
            raise StorageError(
                f"cannot place content into {dest}: {e}", slug=slug
            ) from e

        return PostContentRecord(
            slug=slug,
            root_path=dest,
            index_document_path=index_doc,
            hero_relative_path=hero,
            assets_relative_path=assets_relative_path(dest),
            front_matter=fm,
        )

    async def ingest_async(
        self,
        data: bytes,
        declared_filename: str,
        preferred_slug: Optional[str] = None,
        executor: Optional[concurrent.futures.Executor] = None,
    ) -> PostContentRecord:
        """
        Run `ingest` on a worker thread. Cancelling the awaiting task stops
        the worker at its next checkpoint and waits for its cleanup before
        the CancelledError propagates.
        """
        cancel = threading.Event()
        loop = asyncio.get_running_loop()
        fut = loop.run_in_executor(
            executor,
            self.ingest,
            data,
            declared_filename,
            preferred_slug,
            cancel,
        )
        try:
            return await asyncio.shield(fut)
        except asyncio.CancelledError:
            cancel.set()
            # the worker owns the reserved folder until it returns
            while not fut.done():
                try:
                    await asyncio.shield(fut)
                except (asyncio.CancelledError, Exception):
                    pass
            err = None if fut.cancelled() else fut.exception()
            if err is not None:
                logger.debug(
                    "cancelled ingestion of %s stopped: %s", declared_filename, err
                )
            elif not fut.cancelled():
                # finished past the last checkpoint; nobody will receive it
                remove_tree(fut.result().root_path)
            raise

    def delete_content(self, slug: str) -> bool:
        return delete_content(self.config, slug)

    def post_folder(self, slug: str) -> pathlib.Path:
        return post_folder(self.config, slug)

    def resolve_public_url(self, absolute_path: pathlib.Path) -> str:
        return public_url(
            self.config.storage_root,
            self.config.public_base_prefix,
            pathlib.Path(absolute_path),
        )


def describe_upload(
    ingestor: ContentIngestor, record: PostContentRecord
) -> UploadSummary:
    fm = record.front_matter
    title = (fm.title or "").strip() or record.slug.replace("-", " ")
    hero_url = None
    if record.hero_relative_path:
        hero_url = ingestor.resolve_public_url(
            record.root_path / record.hero_relative_path
        )
    return UploadSummary(
        slug=record.slug,
        title=title,
        summary=fm.summary or "",
        content_url=ingestor.resolve_public_url(record.index_document_path),
        hero_url=hero_url,
        front_matter=fm,
    )
