"""Shared schemas for mdtree."""

from mdtree.schemas.edits import BatchResult, EditOperation, EditOutcome
from mdtree.schemas.toc import TocEntry

__all__ = ["BatchResult", "EditOperation", "EditOutcome", "TocEntry"]
