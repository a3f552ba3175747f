"""Twin-surface paraphrase editor core: raw text mirrored as an annotated document."""

__version__ = "0.1.0"
