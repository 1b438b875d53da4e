"""Record store backing the Sales Funnel Academy training platform."""

__version__ = "0.1.0"
