"""Core domain logic for QuoteDesk."""
