# =============================================================================
# tools/__init__.py
# =============================================================================
# FastMCP tool wrappers.
#
# tools/ is the translation layer between MCP sessions and core/:
#   1. declares each tool's name, description and typed parameters
#   2. forwards the validated call to core/operations.py
#   3. logs the request and returns the one-line status string
#
# Tools hold no business logic and make no store calls of their own.
# =============================================================================
