"""Domain layer: errors and repository contracts."""
