"""Client side: connection management, state reconciliation, command helpers."""
