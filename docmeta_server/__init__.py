"""MCP server exposing docx content-control metadata extraction."""

__version__ = "0.1.0"
