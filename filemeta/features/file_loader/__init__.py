"""File metadata loading for directory-based tables.

Walks table locations, applies the ACID or Hudi pre-filter, and reconciles
each file against the descriptors of the previous load.
"""
