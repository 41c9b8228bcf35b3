"""
Generic utility functions shared across modules.

Stateless calendar helpers such as month-end resolution and daily calendars.
"""
