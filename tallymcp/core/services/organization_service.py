"""Organization (DAO) queries against the Tally API."""

import logging
from typing import Any, Dict, List, Optional

from tallymcp.core.services.inputs import (
    GetOrganizationInput,
    GetOrganizationsWithActiveProposalsInput,
    ListOrganizationsInput,
    parse_input,
)
from tallymcp.domain.errors import NetworkError, QueryError
from tallymcp.infrastructure.resilience.query_client import TallyQueryClient

logger = logging.getLogger(__name__)

ORGANIZATION_FIELDS = """
            id
            name
            slug
            chainIds
            governorIds
            proposalsCount
            delegatesCount
            hasActiveProposals
            metadata {
              description
            }
"""

LIST_ORGANIZATIONS_QUERY = f"""
    query ListOrganizations($pageSize: Int!, $filters: OrganizationsFiltersInput, $sort: OrganizationsSortInput) {{
      organizations(input: {{ filters: $filters, sort: $sort, page: {{ limit: $pageSize }} }}) {{
        nodes {{
          ... on Organization {{{ORGANIZATION_FIELDS}          }}
        }}
        pageInfo {{
          count
          firstCursor
          lastCursor
        }}
      }}
    }}
"""

ACTIVE_ORGANIZATIONS_QUERY = f"""
    query GetOrganizationsWithActiveProposals($pageSize: Int!, $chainId: ChainID) {{
      organizations(input: {{
        filters: {{ chainId: $chainId }},
        sort: {{ sortBy: explore, isDescending: true }},
        page: {{ limit: $pageSize }}
      }}) {{
        nodes {{
          ... on Organization {{{ORGANIZATION_FIELDS}          }}
        }}
        pageInfo {{
          count
          firstCursor
          lastCursor
        }}
      }}
    }}
"""

GET_ORGANIZATION_QUERY = """
    query GetOrganization($organizationId: IntID, $organizationSlug: String) {
      organization(input: { id: $organizationId, slug: $organizationSlug }) {
        id
        name
        slug
        chainIds
        governorIds
        proposalsCount
        delegatesCount
        hasActiveProposals
        metadata {
          description
          icon
          color
        }
        creator {
          address
          name
          safes
        }
      }
    }
"""

GET_GOVERNOR_QUERY = """
    query GetGovernor($governorId: AccountID!) {
      governor(input: { id: $governorId }) {
        id
        timelockId
        token {
          id
          symbol
          name
          decimals
        }
        contracts {
          governor {
            address
          }
        }
      }
    }
"""


def summarize_organization(org: Dict[str, Any]) -> Dict[str, Any]:
    """Flattens an Organization node into the summary shape returned to callers."""
    chain_ids = org.get("chainIds") or []
    metadata = org.get("metadata") or {}
    return {
        "id": org.get("id"),
        "name": org.get("name"),
        "slug": org.get("slug"),
        "chainId": chain_ids[0] if chain_ids else "",
        "description": metadata.get("description") or "",
        "proposalStats": {
            "total": org.get("proposalsCount", 0),
            "active": 1 if org.get("hasActiveProposals") else 0,
        },
        "memberCount": org.get("delegatesCount", 0),
    }


async def list_organizations(client: TallyQueryClient, **params: Any) -> Dict[str, Any]:
    """Lists organizations with API-side filtering and sorting.

    Args:
        client: The resilient query client.
        **params: Fields of ListOrganizationsInput.

    Returns:
        ``{"organizations": [...], "pagination": {...}}``
    """
    data = parse_input(ListOrganizationsInput, params, "list_organizations")

    filters: Dict[str, Any] = {}
    if data.chain_id:
        filters["chainId"] = data.chain_id
    if data.has_logo is not None:
        filters["hasLogo"] = data.has_logo

    variables = {
        "pageSize": data.page_size,
        "filters": filters or None,
        "sort": {"sortBy": data.sort_by, "isDescending": data.sort_order == "desc"},
    }
    result = await client.query(LIST_ORGANIZATIONS_QUERY, variables)
    connection = (result or {}).get("organizations") or {}

    return {
        "organizations": [summarize_organization(org) for org in connection.get("nodes") or []],
        "pagination": {
            "hasNextPage": False,
            "hasPreviousPage": data.page > 1,
            "totalCount": (connection.get("pageInfo") or {}).get("count") or 0,
            "currentPage": data.page,
            "pageSize": data.page_size,
        },
    }


async def _fetch_timelock(client: TallyQueryClient, governor_id: str) -> Optional[Dict[str, Any]]:
    """Governor timelock details, or basic info if the governor query fails."""
    try:
        result = await client.query(GET_GOVERNOR_QUERY, {"governorId": governor_id})
    except (NetworkError, QueryError) as e:
        logger.warning(f"Failed to fetch governor details for {governor_id}: {e}")
        return {
            "governorId": governor_id,
            "timelockAddress": None,
            "governorAddress": governor_id,
            "tokenInfo": None,
        }

    governor = (result or {}).get("governor")
    if not governor:
        return None
    token = governor.get("token") or {}
    contracts = governor.get("contracts") or {}
    return {
        "governorId": governor.get("id"),
        "timelockAddress": governor.get("timelockId"),
        "governorAddress": (contracts.get("governor") or {}).get("address") or governor_id,
        "tokenInfo": {
            "symbol": token.get("symbol") or "",
            "name": token.get("name") or "",
            "decimals": token.get("decimals") or 0,
        },
    }


async def get_organization(client: TallyQueryClient, **params: Any) -> Optional[Dict[str, Any]]:
    """Gets one organization by id or slug, with timelock info for each governor.

    Returns:
        The organization details, or None if the API knows no such organization.
    """
    data = parse_input(GetOrganizationInput, params, "get_organization")

    result = await client.query(
        GET_ORGANIZATION_QUERY,
        {"organizationId": data.organization_id, "organizationSlug": data.organization_slug},
    )
    org = (result or {}).get("organization")
    if not org:
        return None

    timelocks: List[Dict[str, Any]] = []
    for governor_id in org.get("governorIds") or []:
        timelock = await _fetch_timelock(client, governor_id)
        if timelock is not None:
            timelocks.append(timelock)

    details = summarize_organization(org)
    details["proposalStats"].update({"passed": 0, "failed": 0})
    details.update({
        "website": None,
        "twitter": None,
        "github": None,
        "createdAt": "",
        "tokens": [],
        "timelocks": timelocks,
        "safes": (org.get("creator") or {}).get("safes") or [],
    })
    return details


async def get_organizations_with_active_proposals(
    client: TallyQueryClient, **params: Any
) -> Dict[str, Any]:
    """Organizations ordered by the API's 'explore' sort, which ranks live proposals first."""
    data = parse_input(
        GetOrganizationsWithActiveProposalsInput, params, "get_organizations_with_active_proposals"
    )

    result = await client.query(
        ACTIVE_ORGANIZATIONS_QUERY, {"pageSize": data.page_size, "chainId": data.chain_id}
    )
    connection = (result or {}).get("organizations") or {}

    organizations = []
    for org in connection.get("nodes") or []:
        summary = summarize_organization(org)
        summary["activeProposals"] = []
        organizations.append(summary)

    return {
        "organizations": organizations,
        "pagination": {
            "hasNextPage": False,
            "hasPreviousPage": False,
            "totalCount": (connection.get("pageInfo") or {}).get("count") or 0,
            "currentPage": 1,
            "pageSize": len(organizations),
        },
    }
