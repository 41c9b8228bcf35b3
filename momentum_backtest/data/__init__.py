"""
Price data contracts, CSV I/O and panel construction.

Handles loading and writing long-format price observations with schema
validation, and reshaping them into the wide daily and month-end panels the
strategy consumes.
"""
