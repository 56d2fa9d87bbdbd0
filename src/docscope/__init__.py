"""
docscope - local document search with privacy redaction.
"""

__version__ = "0.1.0"
