"""Loaders for the abilities package.

This package contains implementations of the Loader interface.

Available loaders:
- memory: records held in process memory, keyed by resource type and identifier
- db: records of SQLAlchemy mapped classes, with collection scoping translated to SQL
"""
