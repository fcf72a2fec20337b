"""Cross-cutting infrastructure: clock and logging."""
