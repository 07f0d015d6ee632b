"""Monitor models, compositor adapters and the layout planner."""
