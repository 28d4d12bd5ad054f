"""Ratios Proxy: caching edge proxy for Alpha Vantage fundamentals."""

__version__ = "0.1.0"
