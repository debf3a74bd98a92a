"""site_tasks: task dependency and prioritization core for site project management."""

__version__ = "0.1.0"
