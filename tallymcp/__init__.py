"""mcp-tally-api: Model Context Protocol server for the Tally governance API.

Exposes organizations, proposals, delegates and votes from Tally as MCP tools
and resources, backed by a resilient GraphQL query client (cache, rate
limiting, retry and validation).
"""

__version__ = "1.0.0"
