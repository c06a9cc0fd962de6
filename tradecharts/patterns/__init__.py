"""
Pattern detection sub-package.

- `PatternDetector` : support/resistance, trend, classic shapes, candlesticks
- `detect_weekly`   : long-horizon trend, volatility and percentile levels
"""

from tradecharts.patterns.detector import PatternDetector
from tradecharts.patterns.weekly import detect_weekly

__all__ = ["PatternDetector", "detect_weekly"]
