"""Department tree package: id allocation, subtree materialization, CLI."""
