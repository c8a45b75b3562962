"""Infrastructure Layer: Contains concrete implementations and adapters.

Connects the application to the outside world (the Tally HTTP API, the
environment, the console and the MCP transport) by implementing the
interfaces defined in the domain layer.
"""
