"""Tool Tracker - physical tool custody tracked via e-mail."""

__version__ = "0.1.0"
