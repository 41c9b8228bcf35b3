"""
Price-panel provider abstractions and concrete storage/remote adapters.

Defines the storage-agnostic provider protocol and adapters for flat CSV
files, a SQLite price table and Yahoo Finance, so the core never depends on
where prices come from.
"""
