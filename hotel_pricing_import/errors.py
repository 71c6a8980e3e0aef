"""Base exception shared by the import modules.

Row-level defects are never raised; they are collected as ParseError values.
Only conditions that make the whole run impossible derive from this class.
"""


class PricingImportError(Exception):
    """Base exception for fatal import failures."""
