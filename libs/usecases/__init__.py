from .snippet_store import SnippetStore

__all__ = ["SnippetStore"]
