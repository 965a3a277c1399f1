"""HTTP API for QuoteDesk."""
