"""docbridge - office document conversion orchestrator for the x2t engine."""

__version__ = "0.1.0"
