"""Build-time content processing for the blog: raw Markdown export, link cards and OGP images."""

__version__ = "0.1.0"
