"""Entry point for running the chrome connector MCP server.

Usage:
    python -m chrome_connector.mcp
"""

import asyncio

from chrome_connector.mcp.server import main

if __name__ == '__main__':
    asyncio.run(main())
