"""MCP tool input definitions."""
