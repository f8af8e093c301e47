"""sessionvault - session persistence and recovery.

Backs up a connection client's local session directory to a document store,
restores it on startup and after disconnects, and keeps it fresh with
periodic backups and health checks.

Example:
    # Using CLI
    sessionvault sessions save --session-id default --dir ./session
    sessionvault status health --max-age-minutes 30

    # Using Python
    from sessionvault.persistence import SessionStore, SqlDocumentStore
    from sessionvault.orchestrator import RecoveryOrchestrator
"""

__version__ = "0.4.1"

__all__ = ["__version__", "main"]


def main() -> None:
    """Main entry point for the sessionvault CLI."""
    from sessionvault.cli.main import app

    app()
