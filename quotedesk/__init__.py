"""QuoteDesk: quotation drafting and multi-tier approval."""

__version__ = "0.1.0"
