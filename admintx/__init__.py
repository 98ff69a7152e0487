"""admintx — transactional runner for administrative host tasks."""

__version__ = "0.1.0"
