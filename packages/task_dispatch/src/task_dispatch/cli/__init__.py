"""Admin CLI for the task queue."""
