"""S3 storage-tier migration engine exposed as MCP tools."""

__version__ = "0.1.0"
