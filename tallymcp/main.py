"""Main entry point for the mcp-tally-api application.

Sets up the Typer CLI application and wires configuration, logging, the
credential holder and the query client together for each command.
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Annotated, Any, Dict, NoReturn, Optional

import typer
from rich.console import Console

# --- Domain Layer ---
from tallymcp.domain.errors import TallyMcpError

# --- Infrastructure Layer ---
from tallymcp.infrastructure.auth.auth_manager import AuthManager, redact_api_key
from tallymcp.infrastructure.cli.display import ConsoleDisplay
from tallymcp.infrastructure.config.settings import (
    build_client_options,
    get_all_config,
    get_log_level,
    get_port,
    get_tally_api_url,
    get_transport_mode,
    load_configuration,
)
from tallymcp.infrastructure.mcp.server import TallyMcpServer
from tallymcp.infrastructure.monitoring.logger_setup import setup_logging
from tallymcp.infrastructure.resilience.query_client import TallyQueryClient, create_tally_client

logger = logging.getLogger(__name__)

# --- Typer App Definition ---
app = typer.Typer(
    name="mcp-tally-api",
    help="MCP server and command line client for the Tally governance API.",
    add_completion=False,
)

ConfigOption = Annotated[
    Optional[Path],
    typer.Option("--config", "-c", help="YAML or JSON configuration file."),
]
LogLevelOption = Annotated[
    Optional[str],
    typer.Option("--log-level", help="Log level (debug, info, warn, error)."),
]


def configure(config_file: Optional[Path], cli_args: Optional[Dict[str, Any]] = None) -> None:
    """Loads configuration and sets up logging from it."""
    load_configuration(config_file=config_file, cli_args=cli_args)
    setup_logging(log_level=get_log_level())


def fail(ui: ConsoleDisplay, message: str) -> NoReturn:
    ui.display_error(message)
    raise typer.Exit(code=1)


async def _run_query(client: TallyQueryClient, query_text: str, variables: Optional[Dict[str, Any]]) -> Any:
    try:
        return await client.query(query_text, variables)
    finally:
        await client.aclose()


# --- CLI Commands ---

@app.command()
def serve(
    transport: Annotated[
        Optional[str],
        typer.Option("--transport", "-t", help="Transport mode: stdio, http or sse."),
    ] = None,
    port: Annotated[
        Optional[int],
        typer.Option("--port", "-p", help="Port for the http and sse transports."),
    ] = None,
    config: ConfigOption = None,
    log_level: LogLevelOption = None,
):
    """Run the MCP server."""
    # stdout carries the protocol in stdio mode
    ui = ConsoleDisplay(Console(stderr=True))
    try:
        configure(config, {"transport_mode": transport, "port": port, "log_level": log_level})
        server = TallyMcpServer(transport_mode=get_transport_mode())
        server.run(port=get_port())
    except TallyMcpError as e:
        logger.error(f"Server failed to start: {e.message}")
        fail(ui, e.message)


@app.command()
def query(
    query_text: Annotated[str, typer.Argument(help="GraphQL query document.")],
    variables: Annotated[
        Optional[str],
        typer.Option("--variables", "-v", help="Query variables as a JSON object."),
    ] = None,
    config: ConfigOption = None,
    log_level: LogLevelOption = None,
):
    """Execute one GraphQL query against the Tally API and print the result."""
    ui = ConsoleDisplay()

    parsed_variables = None
    if variables:
        try:
            parsed_variables = json.loads(variables)
        except ValueError as e:
            fail(ui, f"Invalid --variables JSON: {e}")
        if not isinstance(parsed_variables, dict):
            fail(ui, "--variables must be a JSON object")

    try:
        configure(config, {"log_level": log_level})
        auth_manager = AuthManager("stdio")
        auth_manager.initialize()
        client = create_tally_client(auth_manager, build_client_options())
        result = asyncio.run(_run_query(client, query_text, parsed_variables))
    except TallyMcpError as e:
        fail(ui, e.message)

    ui.display_json(result, title="Query Result")


@app.command(name="check-key")
def check_key(
    config: ConfigOption = None,
    log_level: LogLevelOption = None,
):
    """Validate the configured Tally API key against the API."""
    ui = ConsoleDisplay()
    try:
        configure(config, {"log_level": log_level})
        auth_manager = AuthManager("stdio")
        auth_manager.initialize()
    except TallyMcpError as e:
        fail(ui, e.message)

    if not auth_manager.is_valid_api_key_format(auth_manager.get_api_key()):
        fail(ui, "The configured API key is malformed.")
    if not asyncio.run(auth_manager.validate_api_key()):
        fail(ui, f"The API key was rejected by {get_tally_api_url()}.")
    ui.display_info(f"API key is valid for {get_tally_api_url()}.")


@app.command(name="config")
def show_config(
    config: ConfigOption = None,
    log_level: LogLevelOption = None,
):
    """Show the effective configuration, with the API key redacted."""
    ui = ConsoleDisplay()
    try:
        configure(config, {"log_level": log_level})
    except TallyMcpError as e:
        fail(ui, e.message)

    values = get_all_config()
    api_key = values.get("tally_api_key")
    if not api_key:
        ui.display_warning("TALLY_API_KEY is not set; queries will fail until it is configured.")
    # Redacted in every value, not only tally_api_key
    redacted = {key: redact_api_key(str(value), api_key) for key, value in values.items()}
    ui.display_key_values(redacted, title="Effective Configuration")


# --- Main Execution Guard ---

def cli_entry_point():
    """Function to be called by the script entry point in pyproject.toml."""
    app()


if __name__ == "__main__":
    cli_entry_point()
