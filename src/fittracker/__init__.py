"""FitTracker competitive challenge tooling."""

__version__ = "0.1.0"
