"""Article pipeline: research, write, link, validate and publish SEO articles."""

__version__ = "1.0.0"
