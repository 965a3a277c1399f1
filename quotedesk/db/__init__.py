"""Database layer for QuoteDesk."""
