"""Core of the bot load tester: samples, dispatch, metrics, log buffer, supervisor."""

__version__ = "1.0"
