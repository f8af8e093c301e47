"""CLI command implementations for sessionvault.

Command groups:
- sessions: list, clean up, save and restore stored sessions
- status: backup health checks
- config: manage configuration
"""
