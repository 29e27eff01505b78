"""Database utilities for the remote snippets table."""

from . import models
from .database import get_session, get_sessionmaker, init_db
from .repositories import RemoteTable, SnippetRepo

__all__ = ["models", "get_session", "get_sessionmaker", "init_db", "RemoteTable", "SnippetRepo"]
