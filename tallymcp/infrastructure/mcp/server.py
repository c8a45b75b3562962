"""MCP server exposing the Tally governance queries as tools, resources and prompts.

Tools return pretty-printed JSON text. Errors raised by a tool are reported to
the MCP client as an error result whose text is the structured error report
(code, message, data).
"""

import json
import logging
from datetime import datetime, timezone
from typing import Annotated, Any, Awaitable, Callable, Dict, Literal, Optional

from mcp.server.fastmcp import FastMCP
from mcp.server.fastmcp.exceptions import ToolError
from pydantic import Field

from tallymcp import __version__
from tallymcp.core.services import organization_service, proposal_service, user_service
from tallymcp.domain.errors import (
    ResourceNotFoundError,
    TallyMcpError,
    format_mcp_error,
    is_known_error,
)
from tallymcp.infrastructure.auth.auth_manager import AuthManager
from tallymcp.infrastructure.config.settings import (
    build_client_options,
    get_port,
    get_tally_api_key,
    get_tally_api_url,
    get_transport_mode,
)
from tallymcp.infrastructure.mcp.prompts import GOVERNANCE_PROMPTS, describe_prompt
from tallymcp.infrastructure.resilience.query_client import TallyQueryClient, create_tally_client

logger = logging.getLogger(__name__)

SERVER_NAME = "mcp-tally-api"
SERVER_INSTRUCTIONS = (
    "Query DAO governance data from Tally: organizations, proposals, delegates and users. "
    "Vote counts and token amounts are raw token units; divide by 10^decimals."
)
READ_ONLY = {"readOnlyHint": True, "openWorldHint": True, "idempotentHint": True}

# MCP transport names by configured transport mode
FASTMCP_TRANSPORTS = {"stdio": "stdio", "http": "streamable-http", "sse": "sse"}

ServiceFn = Callable[..., Awaitable[Any]]

OrganizationId = Annotated[str, Field(description="Tally organization ID")]
Address = Annotated[str, Field(description="Ethereum address (0x followed by 40 hex characters)")]
Page = Annotated[Optional[int], Field(description="Page number (default: 1)", ge=1)]
PageSize = Annotated[
    Optional[int], Field(description="Items per page (max: 100, default: 20)", ge=1, le=100)
]
SortOrder = Annotated[Optional[Literal["asc", "desc"]], Field(description="Sort order")]


def to_json_text(data: Any) -> str:
    return json.dumps(data, indent=2, default=str)


class TallyMcpServer:
    """Wires the query client into a FastMCP server."""

    def __init__(
        self,
        transport_mode: Optional[str] = None,
        client: Optional[TallyQueryClient] = None,
        auth_manager: Optional[AuthManager] = None,
    ):
        """Initializes the server. Tools are registered immediately; the
        client is created by initialize() unless one is passed in.

        Args:
            transport_mode: "stdio", "http" or "sse" (defaults to configuration).
            client: Prebuilt query client.
            auth_manager: Credential holder for a client built by initialize().
        """
        self.transport_mode = transport_mode or get_transport_mode()
        # The server always serves the configured key, whatever the transport
        self.auth_manager = auth_manager or AuthManager(
            "stdio" if self.transport_mode == "stdio" else "http"
        )
        self._client = client
        self.mcp = FastMCP(SERVER_NAME, instructions=SERVER_INSTRUCTIONS)

        self._setup_tools()
        self._setup_resources()
        self._setup_prompts()

    def initialize(self) -> None:
        """Loads the API key and builds the query client.

        Raises:
            AuthenticationError: If no API key is configured.
        """
        if self._client is not None:
            return
        self.auth_manager.initialize()
        self._client = create_tally_client(self.auth_manager, build_client_options())
        logger.info(f"{SERVER_NAME} initialized (transport={self.transport_mode})")

    @property
    def client(self) -> TallyQueryClient:
        if self._client is None:
            raise TallyMcpError("Server not properly initialized")
        return self._client

    def get_server_info(self) -> Dict[str, Any]:
        return {
            "name": SERVER_NAME,
            "version": __version__,
            "transport": self.transport_mode,
            "tally_api_url": get_tally_api_url(),
            "api_key_configured": bool(get_tally_api_key()),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    async def _run_tool(self, fn: ServiceFn, **params: Any) -> str:
        """Runs a service function and returns its result as JSON text.

        Raises:
            ToolError: Carrying the structured error report as JSON.
        """
        try:
            result = await fn(self.client, **params)
        except Exception as e:
            if is_known_error(e):
                logger.warning(f"Tool {fn.__name__} failed: {e}")
            else:
                logger.error(f"Unexpected error in tool {fn.__name__}: {e}", exc_info=True)
            raise ToolError(to_json_text(format_mcp_error(e))) from e
        return to_json_text(result)

    # --- Tools ---

    def _setup_tools(self) -> None:
        mcp = self.mcp

        @mcp.tool(
            name="get_server_info",
            title="Server Info",
            description="Get information about the MCP Tally API server",
            annotations={"readOnlyHint": True, "openWorldHint": False},
        )
        async def get_server_info() -> str:
            return to_json_text(self.get_server_info())

        @mcp.tool(
            name="list_organizations",
            title="List Organizations",
            description="List organizations (DAOs) with pagination, filtering, and sorting options",
            annotations=READ_ONLY,
        )
        async def list_organizations(
            page: Page = None,
            page_size: PageSize = None,
            chain_id: Annotated[Optional[str], Field(
                description='Filter by chain ID (e.g., "eip155:1" for Ethereum mainnet)'
            )] = None,
            has_logo: Annotated[Optional[bool], Field(
                description="Filter by whether the organization has a logo"
            )] = None,
            sort_by: Annotated[Optional[Literal["id", "name", "explore", "popular"]], Field(
                description="Sort field (default: name)"
            )] = None,
            sort_order: SortOrder = None,
        ) -> str:
            return await self._run_tool(
                organization_service.list_organizations,
                page=page, page_size=page_size, chain_id=chain_id,
                has_logo=has_logo, sort_by=sort_by, sort_order=sort_order,
            )

        @mcp.tool(
            name="get_organization",
            title="Get Organization",
            description="Get detailed information about an organization by ID or slug (exactly one)",
            annotations=READ_ONLY,
        )
        async def get_organization(
            organization_id: Annotated[Optional[str], Field(description="Organization ID")] = None,
            organization_slug: Annotated[Optional[str], Field(
                description='Organization slug (e.g., "uniswap")'
            )] = None,
        ) -> str:
            return await self._run_tool(
                organization_service.get_organization,
                organization_id=organization_id, organization_slug=organization_slug,
            )

        @mcp.tool(
            name="get_organizations_with_active_proposals",
            title="Organizations With Active Proposals",
            description="List organizations ranked by live governance activity",
            annotations=READ_ONLY,
        )
        async def get_organizations_with_active_proposals(
            page: Page = None,
            page_size: PageSize = None,
            chain_id: Annotated[Optional[str], Field(description="Filter by chain ID")] = None,
        ) -> str:
            return await self._run_tool(
                organization_service.get_organizations_with_active_proposals,
                page=page, page_size=page_size, chain_id=chain_id,
            )

        @mcp.tool(
            name="list_proposals",
            title="List Proposals",
            description="List proposals for an organization, newest first by default",
            annotations=READ_ONLY,
        )
        async def list_proposals(
            organization_id: OrganizationId,
            page: Page = None,
            page_size: PageSize = None,
            governor_id: Annotated[Optional[str], Field(description="Filter by governor ID")] = None,
            proposer: Annotated[Optional[str], Field(description="Filter by proposer address")] = None,
            sort_order: SortOrder = None,
        ) -> str:
            return await self._run_tool(
                proposal_service.list_proposals,
                organization_id=organization_id, page=page, page_size=page_size,
                governor_id=governor_id, proposer=proposer, sort_order=sort_order,
            )

        @mcp.tool(
            name="get_proposal",
            title="Get Proposal",
            description="Get a proposal with vote totals, executable calls and timelock operations",
            annotations=READ_ONLY,
        )
        async def get_proposal(
            proposal_id: Annotated[str, Field(description="Tally proposal ID")],
            organization_id: Annotated[Optional[str], Field(description="Organization ID")] = None,
            organization_slug: Annotated[Optional[str], Field(description="Organization slug")] = None,
        ) -> str:
            return await self._run_tool(
                proposal_service.get_proposal,
                proposal_id=proposal_id, organization_id=organization_id,
                organization_slug=organization_slug,
            )

        @mcp.tool(
            name="get_active_proposals",
            title="Get Active Proposals",
            description="Get votable proposals for one organization or across the most active ones",
            annotations=READ_ONLY,
        )
        async def get_active_proposals(
            page: Page = None,
            page_size: PageSize = None,
            chain_id: Annotated[Optional[str], Field(description="Filter by chain ID")] = None,
            organization_id: Annotated[Optional[str], Field(description="Organization ID")] = None,
        ) -> str:
            return await self._run_tool(
                proposal_service.get_active_proposals,
                page=page, page_size=page_size, chain_id=chain_id, organization_id=organization_id,
            )

        @mcp.tool(
            name="get_user_profile",
            title="Get User Profile",
            description="Get a user's account, DAO delegations and delegate roles",
            annotations=READ_ONLY,
        )
        async def get_user_profile(address: Address, page_size: PageSize = None) -> str:
            return await self._run_tool(
                user_service.get_user_profile, address=address, page_size=page_size
            )

        @mcp.tool(
            name="get_delegate_statement",
            title="Get Delegate Statement",
            description="Get a delegate's statement for a specific organization",
            annotations=READ_ONLY,
        )
        async def get_delegate_statement(address: Address, organization_id: OrganizationId) -> str:
            return await self._run_tool(
                user_service.get_delegate_statement,
                address=address, organization_id=organization_id,
            )

        @mcp.tool(
            name="get_dao_participants",
            title="Get DAO Participants",
            description="Get the delegates participating in an organization",
            annotations=READ_ONLY,
        )
        async def get_dao_participants(
            organization_id: OrganizationId, page: Page = None, page_size: PageSize = None
        ) -> str:
            return await self._run_tool(
                user_service.get_dao_participants,
                organization_id=organization_id, page=page, page_size=page_size,
            )

        @mcp.tool(
            name="get_delegates",
            title="Get Delegates",
            description="Get an organization's delegates with statements and voting power",
            annotations=READ_ONLY,
        )
        async def get_delegates(
            organization_id: OrganizationId,
            page_size: PageSize = None,
            sort_by: Annotated[Optional[Literal["id", "votes", "delegators", "isPrioritized"]], Field(
                description="Sort field (default: votes)"
            )] = None,
            sort_order: SortOrder = None,
        ) -> str:
            return await self._run_tool(
                user_service.get_delegates,
                organization_id=organization_id, page_size=page_size,
                sort_by=sort_by, sort_order=sort_order,
            )

        @mcp.tool(
            name="get_cache_stats",
            title="Cache Stats",
            description="Get query cache size, hits and misses",
            annotations={"readOnlyHint": True, "openWorldHint": False},
        )
        async def get_cache_stats() -> str:
            return to_json_text(self.client.get_cache_stats())

        @mcp.tool(
            name="clear_cache",
            title="Clear Cache",
            description="Drop every cached query result",
            annotations={"readOnlyHint": False, "openWorldHint": False, "idempotentHint": True},
        )
        async def clear_cache() -> str:
            self.client.clear_cache()
            return to_json_text({"cleared": True, "stats": self.client.get_cache_stats()})

    # --- Resources ---

    async def _read_resource(self, uri: str, fn: ServiceFn, **params: Any) -> str:
        result = await fn(self.client, **params)
        if result is None:
            raise ResourceNotFoundError(uri)
        return to_json_text(result)

    def _setup_resources(self) -> None:
        mcp = self.mcp

        @mcp.resource(
            "tally://server/info",
            name="server-info",
            description="Server name, version and status",
            mime_type="application/json",
        )
        def server_info() -> str:
            info = self.get_server_info()
            info.update({
                "description": "MCP server for Tally blockchain governance API",
                "status": "operational",
            })
            return to_json_text(info)

        @mcp.resource(
            "tally://popular-daos",
            name="popular-daos",
            description="Most popular organizations on Tally",
            mime_type="application/json",
        )
        async def popular_daos() -> str:
            return to_json_text(await organization_service.list_organizations(
                self.client, sort_by="popular", sort_order="desc"
            ))

        @mcp.resource(
            "tally://trending/proposals",
            name="trending-proposals",
            description="Active proposals across the most active organizations",
            mime_type="application/json",
        )
        async def trending_proposals() -> str:
            return to_json_text(await proposal_service.get_active_proposals(self.client, page_size=20))

        @mcp.resource(
            "tally://org/{organization_id}",
            name="organization",
            description="Organization details",
            mime_type="application/json",
        )
        async def organization(organization_id: str) -> str:
            return await self._read_resource(
                f"tally://org/{organization_id}",
                organization_service.get_organization,
                organization_id=organization_id,
            )

        @mcp.resource(
            "tally://org/{organization_id}/proposal/{proposal_id}",
            name="proposal",
            description="Proposal details within an organization",
            mime_type="application/json",
        )
        async def proposal(organization_id: str, proposal_id: str) -> str:
            return await self._read_resource(
                f"tally://org/{organization_id}/proposal/{proposal_id}",
                proposal_service.get_proposal,
                proposal_id=proposal_id, organization_id=organization_id,
            )

        @mcp.resource(
            "tally://user/{address}",
            name="user",
            description="User profile with delegations",
            mime_type="application/json",
        )
        async def user(address: str) -> str:
            return await self._read_resource(
                f"tally://user/{address}", user_service.get_user_profile, address=address
            )

    # --- Prompts ---

    def _setup_prompts(self) -> None:
        for name, template in GOVERNANCE_PROMPTS.items():
            self.mcp.prompt(name=name, description=describe_prompt(name))(template)

    # --- Lifecycle ---

    def run(self, transport: Optional[str] = None, port: Optional[int] = None) -> None:
        """Initializes the client and serves until the transport closes."""
        mode = transport or self.transport_mode
        if mode not in FASTMCP_TRANSPORTS:
            raise ValueError(f"Unsupported transport: {mode}")
        self.initialize()
        if mode != "stdio":
            self.mcp.settings.port = port or get_port()
        logger.info(f"Starting {SERVER_NAME} over {mode}")
        self.mcp.run(transport=FASTMCP_TRANSPORTS[mode])
