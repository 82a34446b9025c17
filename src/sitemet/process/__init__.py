"""
Monthly-to-daily resampling.

Key Classes:
    MonthlyToDailyExpander: Per-year, per-site expansion of monthly tables.
    WeatherGenerator: Wet-day-count driven daily precipitation.
    ExpansionMethod: Which algorithm a variable is expanded with.
"""

from sitemet.process.expander import DEFAULT_METHODS, ExpansionMethod, MonthlyToDailyExpander
from sitemet.process.generator import WeatherGenerator

__all__ = [
    "DEFAULT_METHODS",
    "ExpansionMethod",
    "MonthlyToDailyExpander",
    "WeatherGenerator",
]
