"""Structural accessibility audits (headings and landmarks) for rendered markup."""

__version__ = "1.0.0"
