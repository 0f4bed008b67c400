"""Pay equity import pipeline and gender pay gap risk computation."""

__version__ = "0.1.0"
