"""Proposal queries, including votable proposals across organizations."""

import logging
from typing import Any, Dict, List, Optional

from tallymcp.core.services.inputs import (
    GetActiveProposalsInput,
    GetProposalInput,
    ListProposalsInput,
    parse_input,
)
from tallymcp.domain.errors import NetworkError, QueryError, RateLimitError
from tallymcp.infrastructure.resilience.query_client import TallyQueryClient

logger = logging.getLogger(__name__)

VOTABLE_STATUSES = ("active", "extended")
ACTIVE_ORGANIZATIONS_SCAN_SIZE = 50
PROPOSALS_PER_ORGANIZATION = 5
ONE_ETH_WEI = 10 ** 18

PROPOSAL_SUMMARY_FIELDS = """
            id
            onchainId
            status
            metadata {
              title
              description
            }
            organization {
              id
              name
              slug
            }
            proposer {
              address
              name
            }
            voteStats {
              type
              votesCount
              percent
            }
            start {
              ... on Block { timestamp }
              ... on BlocklessTimestamp { timestamp }
            }
            end {
              ... on Block { timestamp }
              ... on BlocklessTimestamp { timestamp }
            }
"""

LIST_PROPOSALS_QUERY = f"""
    query ListProposals($pageSize: Int!, $filters: ProposalsFiltersInput!, $sort: ProposalsSortInput) {{
      proposals(input: {{ filters: $filters, sort: $sort, page: {{ limit: $pageSize }} }}) {{
        nodes {{
          ... on Proposal {{{PROPOSAL_SUMMARY_FIELDS}          }}
        }}
        pageInfo {{
          count
          firstCursor
          lastCursor
        }}
      }}
    }}
"""

ORGANIZATION_PROPOSALS_QUERY = f"""
    query GetProposalsForOrg($organizationId: IntID!, $pageSize: Int!) {{
      proposals(input: {{
        filters: {{ organizationId: $organizationId }},
        page: {{ limit: $pageSize }}
      }}) {{
        nodes {{
          ... on Proposal {{{PROPOSAL_SUMMARY_FIELDS}          }}
        }}
      }}
    }}
"""

ACTIVE_ORGANIZATIONS_QUERY = """
    query GetActiveOrganizations($pageSize: Int!) {
      organizations(input: {
        sort: { sortBy: explore, isDescending: true },
        page: { limit: $pageSize }
      }) {
        nodes {
          ... on Organization {
            id
            name
            slug
            hasActiveProposals
            proposalsCount
          }
        }
      }
    }
"""

GET_PROPOSAL_QUERY = """
    query GetProposal($proposalId: IntID!) {
      proposal(input: { id: $proposalId }) {
        id
        onchainId
        status
        metadata {
          title
          description
        }
        organization {
          id
          name
          slug
        }
        proposer {
          address
          name
        }
        creator {
          address
          name
        }
        voteStats {
          type
          votesCount
          votersCount
          percent
        }
        start {
          ... on Block { timestamp number }
          ... on BlocklessTimestamp { timestamp }
        }
        end {
          ... on Block { timestamp number }
          ... on BlocklessTimestamp { timestamp }
        }
        executableCalls {
          target
          value
          signature
          calldata
          decodedCalldata {
            signature
            parameters {
              name
              type
              value
            }
          }
        }
      }
    }
"""


def _votes_of(vote_stats: List[Dict[str, Any]], vote_type: str) -> str:
    for stat in vote_stats:
        if stat.get("type") == vote_type:
            return stat.get("votesCount") or "0"
    return "0"


def summarize_proposal(proposal: Dict[str, Any], fallback_org: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Flattens a Proposal node into the summary shape returned to callers."""
    metadata = proposal.get("metadata") or {}
    proposer = proposal.get("proposer") or {}
    organization = proposal.get("organization") or {}
    fallback_org = fallback_org or {}
    vote_stats = proposal.get("voteStats") or []

    return {
        "id": proposal.get("id"),
        "title": metadata.get("title") or "",
        "description": metadata.get("description") or "",
        "status": proposal.get("status"),
        "createdAt": "",
        "startTime": (proposal.get("start") or {}).get("timestamp") or "",
        "endTime": (proposal.get("end") or {}).get("timestamp") or "",
        "proposer": {
            "id": proposer.get("address") or "",
            "name": proposer.get("name") or "",
            "address": proposer.get("address"),
        },
        "votingStats": {
            "quorum": "0",
            "yesVotes": _votes_of(vote_stats, "for"),
            "noVotes": _votes_of(vote_stats, "against"),
            "abstainVotes": _votes_of(vote_stats, "abstain"),
        },
        "organization": {
            "id": organization.get("id") or fallback_org.get("id") or "",
            "name": organization.get("name") or fallback_org.get("name") or "",
            "slug": organization.get("slug") or fallback_org.get("slug") or "",
        },
    }


def analyze_timelock_operations(executable_calls: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Classifies executable calls into transfer and custom operations.

    Returns:
        ``{"operations": [...], "summary": {"totalEthValue", "totalTokenTransfers",
        "majorOperations"}}`` with wei amounts as decimal strings.
    """
    operations = []
    total_eth_value = 0
    total_token_transfers = 0
    major_operations = []

    for call in executable_calls:
        eth_value = int(call.get("value") or "0")
        decoded = call.get("decodedCalldata") or {}
        parameters = {p.get("name"): p.get("value") for p in decoded.get("parameters") or []}
        signature = decoded.get("signature") or call.get("signature") or ""

        token_address = amount = recipient = None
        if "transfer(" in signature:
            operation_type = "erc20transfer"
            description = "ERC20 Token Transfer"
            total_token_transfers += 1
            recipient = parameters.get("to") or parameters.get("recipient")
            amount = parameters.get("amount") or parameters.get("value")
            token_address = call.get("target")
        elif "transferFrom(" in signature:
            operation_type = "erc20transfer"
            description = "ERC20 Token Transfer (From)"
            total_token_transfers += 1
            recipient = parameters.get("to")
            amount = parameters.get("amount") or parameters.get("value")
            token_address = call.get("target")
        elif eth_value > 0:
            operation_type = "nativetransfer"
            description = f"Native Token Transfer: {eth_value} wei"
            recipient = call.get("target")
            amount = str(eth_value)
            total_eth_value += eth_value
        elif "execute(" in signature or "multicall(" in signature:
            operation_type = "custom"
            description = "Complex Timelock Operation"
        else:
            operation_type = "other"
            description = signature or "Unknown Operation"

        operations.append({
            "type": operation_type,
            "target": call.get("target"),
            "value": call.get("value") or "0",
            "tokenAddress": token_address,
            "amount": amount,
            "recipient": recipient,
            "description": description,
        })

        if eth_value > ONE_ETH_WEI or operation_type in ("erc20transfer", "custom"):
            major_operations.append(description)

    return {
        "operations": operations,
        "summary": {
            "totalEthValue": str(total_eth_value),
            "totalTokenTransfers": total_token_transfers,
            "majorOperations": major_operations,
        },
    }


async def list_proposals(client: TallyQueryClient, **params: Any) -> Dict[str, Any]:
    """Lists an organization's proposals, newest first unless sort_order='asc'."""
    data = parse_input(ListProposalsInput, params, "list_proposals")

    # organizationId stays a string: the ids exceed float precision
    filters: Dict[str, Any] = {"organizationId": data.organization_id}
    if data.governor_id:
        filters["governorId"] = data.governor_id
    if data.proposer:
        filters["proposer"] = data.proposer

    variables = {
        "pageSize": data.page_size,
        "filters": filters,
        "sort": {"sortBy": "id", "isDescending": data.sort_order == "desc"},
    }
    result = await client.query(LIST_PROPOSALS_QUERY, variables)
    nodes = ((result or {}).get("proposals") or {}).get("nodes") or []
    proposals = [summarize_proposal(node) for node in nodes]

    return {
        "proposals": proposals,
        "pagination": {
            "hasNextPage": False,
            "hasPreviousPage": False,
            "totalCount": len(proposals),
            "currentPage": data.page,
            "pageSize": data.page_size,
        },
    }


async def get_proposal(client: TallyQueryClient, **params: Any) -> Optional[Dict[str, Any]]:
    """Gets one proposal with vote totals, executable calls and timelock analysis."""
    data = parse_input(GetProposalInput, params, "get_proposal")

    result = await client.query(GET_PROPOSAL_QUERY, {"proposalId": data.proposal_id})
    proposal = (result or {}).get("proposal")
    if not proposal:
        return None

    details = summarize_proposal(proposal)
    creator = proposal.get("creator") or {}
    proposer = proposal.get("proposer") or {}
    address = proposer.get("address") or creator.get("address") or ""
    details["proposer"] = {
        "id": address,
        "name": proposer.get("name") or creator.get("name") or "",
        "address": address,
    }

    vote_stats = proposal.get("voteStats") or []
    details["votingStats"]["totalVotes"] = str(
        sum(int(stat.get("votesCount") or "0") for stat in vote_stats)
    )

    calls = proposal.get("executableCalls") or []
    details["executionDetails"] = {
        "status": proposal.get("status"),
        "executedAt": None,
        "transactionHash": None,
    }
    details["actions"] = [
        {
            "id": str(index),
            "target": call.get("target"),
            "value": call.get("value"),
            "signature": call.get("signature"),
            "calldata": call.get("calldata"),
        }
        for index, call in enumerate(calls)
    ]
    details["executableCalls"] = [
        dict(action, decodedCalldata=call.get("decodedCalldata"))
        for action, call in zip(details["actions"], calls)
    ]

    analysis = analyze_timelock_operations(calls)
    details["timelockOperations"] = analysis["operations"]
    details["timelockSummary"] = analysis["summary"]
    return details


def _votable(nodes: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return [node for node in nodes if node.get("status") in VOTABLE_STATUSES]


async def get_active_proposals(client: TallyQueryClient, **params: Any) -> Dict[str, Any]:
    """Votable (active or extended) proposals.

    With an organization_id, scans that organization's recent proposals.
    Otherwise scans the most active organizations, merges their votable
    proposals, orders them by end time (soonest first) and pages the result.
    """
    data = parse_input(GetActiveProposalsInput, params, "get_active_proposals")

    if data.organization_id:
        result = await client.query(
            ORGANIZATION_PROPOSALS_QUERY,
            {"organizationId": data.organization_id, "pageSize": ACTIVE_ORGANIZATIONS_SCAN_SIZE},
        )
        nodes = ((result or {}).get("proposals") or {}).get("nodes") or []
        proposals = [summarize_proposal(node) for node in _votable(nodes)][: data.page_size]
        return {
            "proposals": proposals,
            "pagination": {
                "hasNextPage": False,
                "hasPreviousPage": False,
                "totalCount": len(proposals),
                "currentPage": data.page,
                "pageSize": data.page_size,
            },
        }

    orgs_result = await client.query(
        ACTIVE_ORGANIZATIONS_QUERY, {"pageSize": ACTIVE_ORGANIZATIONS_SCAN_SIZE}
    )
    active_orgs = [
        org
        for org in ((orgs_result or {}).get("organizations") or {}).get("nodes") or []
        if org.get("hasActiveProposals") is True
    ]

    all_votable: List[Dict[str, Any]] = []
    for org in active_orgs:
        try:
            result = await client.query(
                ORGANIZATION_PROPOSALS_QUERY,
                {"organizationId": org["id"], "pageSize": PROPOSALS_PER_ORGANIZATION},
            )
        except RateLimitError as e:
            logger.warning(f"Stopping active proposal scan, rate limited: {e}")
            break
        except (NetworkError, QueryError) as e:
            logger.warning(f"Failed to get proposals for org {org.get('id')}: {e}")
            continue
        nodes = ((result or {}).get("proposals") or {}).get("nodes") or []
        all_votable.extend(summarize_proposal(node, fallback_org=org) for node in _votable(nodes))

    # Proposals without an end time sort last
    all_votable.sort(key=lambda p: (not p["endTime"], str(p["endTime"])))

    start = (data.page - 1) * data.page_size
    end = start + data.page_size
    return {
        "proposals": all_votable[start:end],
        "pagination": {
            "hasNextPage": end < len(all_votable),
            "hasPreviousPage": data.page > 1,
            "totalCount": len(all_votable),
            "currentPage": data.page,
            "pageSize": data.page_size,
        },
    }
