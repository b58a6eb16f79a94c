"""tunebridge - playlist migration between music streaming services."""
