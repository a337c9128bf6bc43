#!/usr/bin/env python3
"""watchparty - shared remote session hub

Usage:
    watchparty                     # Run HTTP API + WebSocket gateway (default)
    watchparty serve --port 3001   # Same, overriding the HTTP port
    watchparty check-config        # Validate HYPERBEAM_API_KEY and settings
    watchparty version             # Show version

The HTTP API listens on PORT (default 3001) and the WebSocket gateway on
GATEWAY_PORT (default 3002). Browser clients must open their socket against
GATEWAY_PORT, not the API port.
"""

from watchparty.cli import main

if __name__ == "__main__":
    main()
