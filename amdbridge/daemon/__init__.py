"""Daemon side: player state, command execution, state broadcast, WebSocket server."""
