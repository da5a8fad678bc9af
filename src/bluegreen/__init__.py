"""Blue/green zero-downtime deployment orchestrator."""

__version__ = "1.0.0"
