"""gha-cacheguard: find GitHub Actions jobs that publish artifacts built from a poisonable cache."""

__version__ = "0.1.0"
