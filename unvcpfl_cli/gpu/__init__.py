"""GPU power profile integration."""
