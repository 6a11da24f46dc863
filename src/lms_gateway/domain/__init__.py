"""Domain layer package."""
