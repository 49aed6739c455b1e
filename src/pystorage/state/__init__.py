"""State/store layer.

This package owns the key -> cell mapping and is the only place where
a validated mutation is committed to a cell.
"""
