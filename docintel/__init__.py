"""
DocIntel - document intelligence pipeline.

Extraction, normalization, AI analysis, search and storage for uploaded documents.
"""

__version__ = "1.0.0"
