"""watchparty - shared remote session hub with chat and pointer relay"""

__version__ = "0.1.0"
