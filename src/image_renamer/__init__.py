"""Rename images after keywords generated by a vision-language model."""

__version__ = "0.1.0"
