"""tsgrid - layout, styling and edit-session engine for year-indexed time-series tables."""

__version__ = "0.1.0"
