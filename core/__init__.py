# =============================================================================
# core/__init__.py
# =============================================================================
# Business logic for the Real Estate Ops server: configuration, the record
# store client and the two operations (upsert, rebuild-hub-summary).
#
# Nothing in this package imports FastMCP.  The tools/ layer wraps these
# functions; tests drive them directly with an in-memory store.
# =============================================================================
