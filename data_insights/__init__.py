"""Statistical insights for tabular datasets: column profiles and pairwise correlations."""

__version__ = "1.0.0"
