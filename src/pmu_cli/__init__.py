"""gh-pmu: GitHub Projects issue tracking with release branch trackers."""

__version__ = "0.4.0"

__all__ = ["__version__"]
