"""OTPLUS overtime and capacity allocation engine for Clockify reports."""

__version__ = "0.1.0"
