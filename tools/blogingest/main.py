#!/usr/bin/env python3
"""
Command line front end for the post archive ingestor.

- ingest ARCHIVE  -> <storage_root>/posts/<slug>/ (index.mdx + assets)
- delete SLUG     -> removes a post folder again
- url PATH        -> public URL a stored file is served at

Storage settings come from blog-ingest.yml (storage_root,
public_base_prefix) or BLOG_INGEST_STORAGE_ROOT / BLOG_INGEST_PUBLIC_BASE.
"""

import logging
import pathlib
from typing import Annotated, NoReturn, Optional

import typer

from .config import load_config
from .errors import IngestError
from .posts import ContentIngestor, describe_upload

app = typer.Typer(
    name="blog-ingest",
    help="Ingest zipped posts into the blog content tree.",
    no_args_is_help=True,
)

ConfigOption = Annotated[
    Optional[pathlib.Path],
    typer.Option("--config", "-c", help="Path to blog-ingest.yml."),
]


@app.callback()
def main(
    verbose: Annotated[
        bool, typer.Option("--verbose", "-v", help="Debug logging.")
    ] = False,
) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )


def _ingestor(config: Optional[pathlib.Path]) -> ContentIngestor:
    try:
        return ContentIngestor(load_config(config))
    except IngestError as e:
        _fail(e)


def _fail(e: Exception) -> NoReturn:
    typer.echo(f"ERROR: {e}", err=True)
    raise typer.Exit(code=1)


@app.command()
def ingest(
    archive: Annotated[
        pathlib.Path, typer.Argument(help="Zip file with index.mdx inside.")
    ],
    slug: Annotated[
        Optional[str], typer.Option("--slug", "-s", help="Preferred slug.")
    ] = None,
    config: ConfigOption = None,
) -> None:
    """Ingest ARCHIVE and print where it landed."""
    ingestor = _ingestor(config)
    try:
        data = archive.read_bytes()
    except OSError as e:
        _fail(e)
    try:
        record = ingestor.ingest(data, archive.name, slug)
        summary = describe_upload(ingestor, record)
    except IngestError as e:
        _fail(e)

    typer.echo(f"✓ ingested {summary.slug}")
    typer.echo(f"  title:   {summary.title}")
    typer.echo(f"  content: {summary.content_url}")
    if summary.hero_url:
        typer.echo(f"  hero:    {summary.hero_url}")
    else:
        typer.echo("- no hero image found")


@app.command()
def delete(
    slug: Annotated[str, typer.Argument(help="Slug of the post folder.")],
    config: ConfigOption = None,
) -> None:
    """Remove the folder for SLUG."""
    ingestor = _ingestor(config)
    try:
        existed = ingestor.delete_content(slug)
    except IngestError as e:
        _fail(e)
    if not existed:
        typer.echo(f"! no post folder for {slug}", err=True)
        raise typer.Exit(code=1)
    typer.echo(f"✓ deleted {slug}")


@app.command()
def url(
    path: Annotated[pathlib.Path, typer.Argument(help="File under the storage root.")],
    config: ConfigOption = None,
) -> None:
    """Print the public URL for PATH."""
    ingestor = _ingestor(config)
    try:
        typer.echo(ingestor.resolve_public_url(path.absolute()))
    except IngestError as e:
        _fail(e)


if __name__ == "__main__":
    app()
