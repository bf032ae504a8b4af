"""histfmt - rewrite a range of git history as if a formatter had always
been applied."""

__version__ = "0.1.0"
