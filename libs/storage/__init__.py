"""Local durable storage for snippets."""

from .local_store import ANONYMOUS_PARTITION, LocalSnippetStore, owner_partition

__all__ = ["ANONYMOUS_PARTITION", "LocalSnippetStore", "owner_partition"]
