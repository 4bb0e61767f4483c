"""MCP (Model Context Protocol) surface for the chrome connector.

Imports are lazy so ``python -m chrome_connector.mcp`` does not pay for them twice.
"""

__all__ = ['ConnectorServer']


def __getattr__(name: str):
    if name == 'ConnectorServer':
        from chrome_connector.mcp.server import ConnectorServer

        return ConnectorServer
    raise AttributeError(f"module '{__name__}' has no attribute '{name}'")
