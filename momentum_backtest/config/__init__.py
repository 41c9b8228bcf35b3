"""
Configuration loading and validation for strategy, data and provider settings.

Provides strongly typed settings objects loaded from environment variables
(and an optional .env file) with upfront validation.
"""
