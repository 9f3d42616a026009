"""Article content resolution pipeline for the student newspaper site.

Turns a stored markdown document plus its image records into safe,
render-ready HTML.

Key features:
- ``{{image:<id>}}`` token grammar with escaped ``<figure>`` rendering
- Migration of legacy ``![alt](url)`` images to tokens
- Featured-image resolution (explicit id -> linked image -> legacy url)
- Memoized image lookups with explicit invalidation and optional TTL
- Graceful degradation: missing images render as placeholders

Note: Imports are deferred to avoid requiring ``httpx`` and ``markdown``
at import time.  Use explicit imports from submodules (e.g.,
``from article_pipeline.tokens import IMAGE_TOKEN``) or access via this
package.
"""

from importlib.metadata import version, PackageNotFoundError

try:
    __version__ = version("article-pipeline")
except PackageNotFoundError:
    __version__ = "0.0.0"  # fallback for uninstalled dev usage


def __getattr__(name: str):
    """Lazy imports to avoid requiring third-party packages at import time."""
    _lazy_imports = {
        # article_pipeline.content
        "ArticleContentService": "article_pipeline.content",
        "ArticleNotFoundError": "article_pipeline.content",
        "ContentFetchError": "article_pipeline.content",
        # article_pipeline.config
        "PipelineConfig": "article_pipeline.config",
        # article_pipeline.escaping
        "escape_attribute": "article_pipeline.escaping",
        "escape_html": "article_pipeline.escaping",
        # article_pipeline.figures
        "build_figure": "article_pipeline.figures",
        "replace_tokens": "article_pipeline.figures",
        # article_pipeline.legacy
        "NormalizedMarkdown": "article_pipeline.legacy",
        "normalize_legacy_markdown": "article_pipeline.legacy",
        # article_pipeline.models
        "ArticleContent": "article_pipeline.models",
        "ArticleRecord": "article_pipeline.models",
        "ArticleSummary": "article_pipeline.models",
        "ImageRecord": "article_pipeline.models",
        "RenderImage": "article_pipeline.models",
        # article_pipeline.renderer
        "PythonMarkdownRenderer": "article_pipeline.renderer",
        "split_front_matter": "article_pipeline.renderer",
        # article_pipeline.resolver
        "ImageCache": "article_pipeline.resolver",
        "ImageResolver": "article_pipeline.resolver",
        # article_pipeline.stores
        "Document": "article_pipeline.stores",
        "FileBlobStore": "article_pipeline.stores",
        "HttpBlobStore": "article_pipeline.stores",
        "JsonDocumentStore": "article_pipeline.stores",
        # article_pipeline.tokens
        "IMAGE_TOKEN": "article_pipeline.tokens",
        "extract_token_ids": "article_pipeline.tokens",
    }

    if name in _lazy_imports:
        import importlib
        module = importlib.import_module(_lazy_imports[name])
        return getattr(module, name)

    raise AttributeError(f"module 'article_pipeline' has no attribute {name!r}")


__all__ = [
    "ArticleContent",
    "ArticleContentService",
    "ArticleNotFoundError",
    "ArticleRecord",
    "ArticleSummary",
    "build_figure",
    "ContentFetchError",
    "Document",
    "escape_attribute",
    "escape_html",
    "extract_token_ids",
    "FileBlobStore",
    "HttpBlobStore",
    "IMAGE_TOKEN",
    "ImageCache",
    "ImageRecord",
    "ImageResolver",
    "JsonDocumentStore",
    "NormalizedMarkdown",
    "normalize_legacy_markdown",
    "PipelineConfig",
    "PythonMarkdownRenderer",
    "RenderImage",
    "replace_tokens",
    "split_front_matter",
]
