"""
Storage layer for the crawler.
"""

from .visited_store import VisitedSet, VisitedStore

__all__ = ['VisitedSet', 'VisitedStore']
