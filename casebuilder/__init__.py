"""Case builder: workflow editor backend with view/field reconciliation."""

__version__ = "0.1.0"
