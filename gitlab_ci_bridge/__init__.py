"""GitLab CI bridge: webhook reconciliation and pipeline topology discovery."""

__version__ = "0.1.0"
