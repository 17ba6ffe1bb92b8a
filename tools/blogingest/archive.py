from __future__ import annotations

import contextlib
import logging
import lzma
import pathlib
import stat
import tempfile
import threading
import zipfile
import zlib
from typing import Iterator, List, Optional

from .config import (
    COPY_CHUNK_SIZE,
    DRIVE_PREFIX,
    ENTRY_DOCUMENT,
    IGNORED_TOP_LEVEL,
    MAX_ARCHIVE_MEMBERS,
    UPLOAD_FILENAME,
    WORKSPACE_PREFIX,
)
from .errors import (
    ContentStructureError,
    ExtractionError,
    IngestCancelled,
    StorageError,
)
from .storage import remove_tree

logger = logging.getLogger(__name__)

TREE_DIR_NAME = "tree"

# zipfile surfaces damaged input through several unrelated types;
# ValueError covers names flagged UTF-8 that do not decode
_CORRUPT = (
    zipfile.BadZipFile,
    zlib.error,
    lzma.LZMAError,
    EOFError,
    NotImplementedError,
    RuntimeError,
    ValueError,
)

# a member path that is both a file and a directory
_CONFLICT = (FileExistsError, NotADirectoryError, IsADirectoryError)


@contextlib.contextmanager
def extraction_workspace() -> Iterator[pathlib.Path]:
    """
    A private temp directory for one upload, removed on every exit path.
    Removal problems are logged and never replace the error in flight.
    """
    try:
        path = pathlib.Path(tempfile.mkdtemp(prefix=WORKSPACE_PREFIX))
    except OSError as e:
        raise StorageError(f"cannot create extraction workspace: {e}") from e
    try:
        yield path
    finally:
        remove_tree(path)
        if path.exists():
            logger.warning("extraction workspace %s left behind", path)


def member_path(name: str) -> Optional[pathlib.PurePosixPath]:
    """
    Validate an archive member name and return it as a relative path.
    Absolute names, drive letters and `..` segments are rejected;
    names that normalise to nothing yield None.
    """
    raw = name.replace("\\", "/")
    if raw.startswith("/") or DRIVE_PREFIX.match(raw):
        raise ExtractionError(f"absolute path not allowed in archive: {name!r}")
    parts = [p for p in raw.split("/") if p not in ("", ".")]
    if ".." in parts:
        raise ExtractionError(f"path traversal not allowed in archive: {name!r}")
    if not parts:
        return None
    return pathlib.PurePosixPath(*parts)


def _is_symlink(info: zipfile.ZipInfo) -> bool:
    return stat.S_ISLNK(info.external_attr >> 16)


def _check_members(members: List[zipfile.ZipInfo], max_bytes: int) -> None:
    if len(members) > MAX_ARCHIVE_MEMBERS:
        raise ExtractionError(
            f"archive has {len(members)} entries (limit {MAX_ARCHIVE_MEMBERS})"
        )
    declared = sum(m.file_size for m in members)
    if declared > max_bytes:
        raise ExtractionError(
            f"archive expands to {declared} bytes (limit {max_bytes})"
        )


def _make_dirs(path: pathlib.Path, name: str) -> None:
    try:
        path.mkdir(parents=True, exist_ok=True)
    except _CONFLICT as e:
        raise ExtractionError(f"conflicting archive entries: {name}") from e


def _read_chunk(src, name: str) -> bytes:
    try:
        return src.read(COPY_CHUNK_SIZE)
    except OSError as e:
        # bz2 reports a damaged stream as OSError
        raise ExtractionError(f"cannot decompress {name}: {e}") from e


def _extract_member(
    zf: zipfile.ZipFile, info: zipfile.ZipInfo, target: pathlib.Path
) -> int:
    written = 0
    _make_dirs(target.parent, info.filename)
    try:
        out = open(target, "wb")
    except _CONFLICT as e:
        raise ExtractionError(
            f"conflicting archive entries: {info.filename}"
        ) from e
    with out, zf.open(info) as src:
        while True:
            chunk = _read_chunk(src, info.filename)
            if not chunk:
                break
            written += len(chunk)
            if written > info.file_size:
                raise ExtractionError(
                    f"{info.filename} is larger than its declared size"
                )
            out.write(chunk)
    return written


def safe_extract(
    archive_path: pathlib.Path,
    dest: pathlib.Path,
    max_bytes: int,
    cancel: Optional[threading.Event] = None,
) -> int:
    """
    Unpack `archive_path` into `dest`. Returns the number of files written.
    """
    count = 0
    try:
        zf = zipfile.ZipFile(archive_path)
    except _CORRUPT as e:
        raise ExtractionError(f"cannot read archive: {e}") from e
    except OSError as e:
        raise ExtractionError(f"cannot read archive directory: {e}") from e
    try:
        with zf:
            members = zf.infolist()
            _check_members(members, max_bytes)
            for info in members:
                if cancel is not None and cancel.is_set():
                    raise IngestCancelled("cancelled during extraction")
                rel = member_path(info.filename)
                if rel is None:
                    continue
                if _is_symlink(info):
                    raise ExtractionError(
                        f"symbolic links not allowed in archive: {info.filename!r}"
                    )
                target = dest.joinpath(*rel.parts)
                if info.is_dir():
                    _make_dirs(target, info.filename)
                    continue
                _extract_member(zf, info, target)
                count += 1
    except _CORRUPT as e:
        raise ExtractionError(f"cannot extract archive: {e}") from e
    except OSError as e:
        raise StorageError(f"cannot write extracted files: {e}") from e
    return count


def unpack_upload(
    workspace: pathlib.Path,
    data: bytes,
    max_bytes: int,
    cancel: Optional[threading.Event] = None,
) -> pathlib.Path:
    """Spool the upload into `workspace` and extract it beside itself."""
    archive_path = workspace / UPLOAD_FILENAME
    tree = workspace / TREE_DIR_NAME
    try:
        archive_path.write_bytes(data)
        tree.mkdir()
    except OSError as e:
        raise StorageError(f"cannot spool upload: {e}") from e
    n = safe_extract(archive_path, tree, max_bytes, cancel)
    logger.debug("extracted %d files into %s", n, tree)
    return tree


def locate_content_root(tree: pathlib.Path) -> pathlib.Path:
    """
    Exactly one top-level folder holding the entry document, or the
    extraction root itself when it holds the entry document and no
    folder does.
    """
    candidates = [
        d
        for d in sorted(tree.iterdir())
        if d.is_dir()
        and not d.is_symlink()
        and d.name not in IGNORED_TOP_LEVEL
        and (d / ENTRY_DOCUMENT).is_file()
    ]
    if len(candidates) == 1:
        return candidates[0]
    if len(candidates) > 1:
        names = ", ".join(d.name for d in candidates)
        raise ContentStructureError(
            f"archive has several folders with {ENTRY_DOCUMENT}: {names}"
        )
    if (tree / ENTRY_DOCUMENT).is_file():
        return tree
    raise ContentStructureError(
        f"archive must contain a folder (or root) with {ENTRY_DOCUMENT}"
    )
