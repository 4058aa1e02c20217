"""Blue/green release and content hot-sync orchestrator."""

__version__ = "0.3.0"
