"""Migration orchestration, output and CLI."""
