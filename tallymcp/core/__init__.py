"""Core Application Layer: query validation and the governance query services.

Services build GraphQL documents and variables, hand them to the resilient
query client and reshape the returned data for MCP callers.
"""
