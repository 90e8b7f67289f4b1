"""Method-filtering reverse proxy for a JSON-RPC and snapshot download upstream."""

__version__ = "0.1.0"
