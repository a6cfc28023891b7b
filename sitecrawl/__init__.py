"""
sitecrawl

A bounded, same-domain web crawler that remembers what it has already visited.
"""

__version__ = "1.0.0"
__description__ = "Depth-bounded, concurrency-limited same-domain crawler with resumable visited state"
