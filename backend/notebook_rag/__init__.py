"""Notebook document ingestion and grounded retrieval backend."""

__version__ = "0.1.0"
