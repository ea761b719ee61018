"""Client-side workflow for comparing and merging documents with a remote diff/merge service."""

__version__ = "0.1.0"
