"""CLI entry point for article-pipeline.

Render stored articles the same way the article page does, against a JSON
export of the document store and a local or HTTP blob store.

Usage::

    article-pipeline render my-article -d export/
    article-pipeline render my-article -d export/ --json
    article-pipeline normalize my-article -d export/ --blob-url https://cdn/x
    article-pipeline featured a1 a2 a3 -d export/
    article-pipeline list -d export/
"""

import argparse
import asyncio
import json
import logging
import os
import sys
from dataclasses import asdict
from pathlib import Path

import colorlog

from article_pipeline import __version__
from article_pipeline.config import DEFAULT_LOOKUP_TIMEOUT_S, PipelineConfig
from article_pipeline.content import ArticleContentService
from article_pipeline.stores import FileBlobStore, HttpBlobStore, JsonDocumentStore
from article_pipeline.tokens import IMAGE_TOKEN

_log = logging.getLogger("article-pipeline")

DATA_DIR_ENV = "ARTICLE_PIPELINE_DATA_DIR"
"""Environment variable providing the default ``--data-dir``."""

BLOB_URL_ENV = "ARTICLE_PIPELINE_BLOB_URL"
"""Environment variable providing the default ``--blob-url``."""

_DEFAULT_BLOB_SUBDIR = "blobs"
"""Blob directory inside the data dir when no blob source is given."""


# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------


def setup_colorized_logging():
    """Configure colorized logging output."""
    handler = colorlog.StreamHandler()
    handler.setFormatter(
        colorlog.ColoredFormatter(
            "%(log_color)s%(levelname)-8s%(reset)s %(blue)s%(name)-9s%(reset)s: "
            "%(message)s",
            log_colors={
                "DEBUG": "cyan",
                "INFO": "green",
                "WARNING": "yellow",
                "ERROR": "red",
                "CRITICAL": "red,bg_white",
            },
        )
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(logging.INFO)

    # Suppress noisy libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("MARKDOWN").setLevel(logging.WARNING)


def _setup_logging(verbose: bool) -> None:
    """Initialize colorized logging and optionally enable debug level."""
    setup_colorized_logging()
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------


def _build_parser() -> argparse.ArgumentParser:
    """Build and return the CLI argument parser with subcommands."""
    # -- Parent parsers for shared argument groups -----------------------------
    common_parent = argparse.ArgumentParser(add_help=False)
    common_parent.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    common_parent.add_argument(
        "-d", "--data-dir",
        type=Path,
        default=os.environ.get(DATA_DIR_ENV),
        help="Document-store export directory, laid out as "
             "<dir>/<collection>/<id>.json "
             f"(default: ${DATA_DIR_ENV})",
    )
    blob_group = common_parent.add_mutually_exclusive_group()
    blob_group.add_argument(
        "--blob-dir",
        type=Path,
        default=None,
        help="Directory holding markdown blobs "
             f"(default: <data-dir>/{_DEFAULT_BLOB_SUBDIR})",
    )
    blob_group.add_argument(
        "--blob-url",
        default=os.environ.get(BLOB_URL_ENV),
        help="Base URL to fetch markdown blobs from "
             f"(default: ${BLOB_URL_ENV})",
    )
    common_parent.add_argument(
        "--timeout",
        type=float,
        default=DEFAULT_LOOKUP_TIMEOUT_S,
        metavar="SECONDS",
        help="Per-lookup timeout for image queries (default: %(default)s).",
    )
    common_parent.add_argument(
        "--cache-ttl",
        type=float,
        default=None,
        metavar="SECONDS",
        help="Expire cached image lookups after SECONDS "
             "(default: keep for the whole run).",
    )

    json_parent = argparse.ArgumentParser(add_help=False)
    json_parent.add_argument(
        "--json",
        action="store_true",
        help="Print JSON instead of plain text",
    )

    # -- Main parser -----------------------------------------------------------
    parser = argparse.ArgumentParser(
        prog="article-pipeline",
        description="Resolve article markdown and image records into "
                    "render-ready HTML",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"""
Commands:
  render        Render an article to HTML
  normalize     Print markdown with legacy images rewritten to {IMAGE_TOKEN.example}
  featured      Print the featured image of one or more articles
  list          List articles with their featured images

Run '%(prog)s COMMAND --help' for command-specific options.
        """,
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command")

    p_render = subparsers.add_parser(
        "render",
        parents=[common_parent, json_parent],
        help="Render an article to HTML",
        description="Render an article to HTML, exactly as the article "
                    "page would display it.",
    )
    p_render.add_argument("article_id", help="Article document id")

    p_normalize = subparsers.add_parser(
        "normalize",
        parents=[common_parent],
        help="Print the normalized markdown of an article",
        description="Print the article markdown with legacy inline images "
                    "rewritten to image tokens.  This is the form an edit "
                    "flow should persist.",
    )
    p_normalize.add_argument("article_id", help="Article document id")

    p_featured = subparsers.add_parser(
        "featured",
        parents=[common_parent, json_parent],
        help="Print the featured image of articles",
        description="Resolve the featured image of each article "
                    "(featuredImageId, then linked images, then imageUrl).",
    )
    p_featured.add_argument(
        "article_ids",
        nargs="+",
        help="Article document id(s)",
    )

    subparsers.add_parser(
        "list",
        parents=[common_parent, json_parent],
        help="List articles with their featured images",
        description="List all articles, newest first, with their "
                    "featured images.",
    )

    return parser


# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------


def _build_service(
    args: argparse.Namespace,
) -> tuple[ArticleContentService, HttpBlobStore | None]:
    """Build the content service from parsed arguments.

    Returns the service and, when blobs come over HTTP, the blob store so
    the caller can close its client.
    """
    if args.data_dir is None:
        raise ValueError(f"--data-dir is required (or set ${DATA_DIR_ENV})")
    data_dir = Path(args.data_dir)
    if not data_dir.is_dir():
        raise ValueError(f"Data directory not found: {data_dir}")

    config = PipelineConfig(lookup_timeout=args.timeout, cache_ttl=args.cache_ttl)
    documents = JsonDocumentStore(data_dir)

    http_blobs: HttpBlobStore | None = None
    # An explicit --blob-dir wins over a --blob-url taken from the environment.
    if args.blob_dir is None and args.blob_url:
        http_blobs = HttpBlobStore(args.blob_url)
        blobs = http_blobs
    else:
        blobs = FileBlobStore(args.blob_dir or data_dir / _DEFAULT_BLOB_SUBDIR)

    service = ArticleContentService(documents, blobs, config=config)
    return service, http_blobs


def _print_json(data: object) -> None:
    print(json.dumps(data, indent=2, ensure_ascii=False, default=str))


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


async def _render(args: argparse.Namespace, service: ArticleContentService) -> int:
    content = await service.get_article_content(args.article_id)
    if args.json:
        _print_json(content.to_dict())
    else:
        print(content.content_html)
    return 0


async def _normalize(args: argparse.Namespace, service: ArticleContentService) -> int:
    content = await service.get_article_content(args.article_id)
    sys.stdout.write(content.markdown)
    if not content.markdown.endswith("\n"):
        sys.stdout.write("\n")
    return 0


async def _featured(args: argparse.Namespace, service: ArticleContentService) -> int:
    results: dict[str, object] = {}
    for article_id in args.article_ids:
        image = await service.resolve_featured_image_for_article(article_id)
        results[article_id] = image
        if image is None:
            _log.info("%s: no featured image", article_id)
    if args.json:
        _print_json({
            article_id: (asdict(image) if image is not None else None)
            for article_id, image in results.items()
        })
    else:
        for article_id, image in results.items():
            print(f"{article_id}\t{image.url if image is not None else '-'}")
    return 0


async def _list(args: argparse.Namespace, service: ArticleContentService) -> int:
    summaries = await service.list_article_summaries()
    if args.json:
        _print_json([s.to_dict() for s in summaries])
        return 0
    for s in summaries:
        url = s.featured_image.url if s.featured_image is not None else "-"
        print(f"{s.date or '-':<12} {s.id:<24} {s.title}\t{url}")
    _log.info("%d article(s)", len(summaries))
    return 0


_HANDLERS = {
    "render": _render,
    "normalize": _normalize,
    "featured": _featured,
    "list": _list,
}


async def _run(args: argparse.Namespace) -> int:
    service, http_blobs = _build_service(args)
    try:
        return await _HANDLERS[args.command](args, service)
    finally:
        if http_blobs is not None:
            await http_blobs.aclose()


def _cmd(args: argparse.Namespace) -> int:
    """Run a subcommand, mapping fatal errors to exit code 1."""
    _setup_logging(args.verbose)
    _log.debug("article-pipeline %s", __version__)
    try:
        return asyncio.run(_run(args))
    except Exception as e:
        _log.error("Fatal error: %s", e)
        return 1


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = _build_parser()
    argv = sys.argv[1:] if argv is None else argv

    # Show help if no arguments provided.
    if not argv:
        parser.print_help()
        return 0

    args = parser.parse_args(argv)

    # No subcommand given (e.g. only --version was handled by argparse).
    if args.command is None:
        parser.print_help()
        return 0

    return _cmd(args)


if __name__ == "__main__":
    sys.exit(main())
