"""Hotel pricing bulk import (spreadsheet -> PostgreSQL).

Parses an uploaded pricing workbook, resolves names against reference data,
validates the whole batch and upserts price bands.
"""

__version__ = "0.3.0"
