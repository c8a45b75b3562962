"""User, delegate and delegation queries.

Vote and delegation amounts come back from the API in raw token units.
Each result carries a note telling the caller how to scale them.
"""

import logging
from typing import Any, Dict, Optional

from tallymcp.core.services.inputs import (
    GetDaoParticipantsInput,
    GetDelegatesInput,
    GetDelegateStatementInput,
    GetUserProfileInput,
    parse_input,
)
from tallymcp.infrastructure.resilience.query_client import TallyQueryClient

logger = logging.getLogger(__name__)

DEFAULT_TOKEN_DECIMALS = 18

VOTES_CONVERSION_REMINDER = (
    "IMPORTANT: All votesCount values in delegate participations are in raw token units "
    "(Ethereum-style). Use tokenInfo.decimals field to convert: human-readable amount = "
    "raw value / 10^decimals."
)
PROFILE_CONVERSION_REMINDER = (
    "IMPORTANT: All vote counts and delegation amounts are in raw token units (Ethereum-style). "
    "Use token decimals to convert: human-readable amount = raw value / 10^decimals. "
    "DAO participations show delegated amounts, delegate participations show voting power."
)

USER_PROFILE_QUERY = """
    query GetUserProfile($address: Address!, $pageSize: Int!) {
      accountV2(id: $address) {
        id
        address
        name
        bio
        twitter
        ens
        picture
      }
      delegatees(input: { filters: { address: $address }, page: { limit: $pageSize } }) {
        nodes {
          ... on Delegation {
            id
            organization { id name slug }
            token { symbol name decimals }
            votes
          }
        }
      }
      delegates(input: { filters: { address: $address } }) {
        nodes {
          ... on Delegate {
            id
            organization { id name slug }
            statement { statement statementSummary isSeekingDelegation }
            votesCount
            delegatorsCount
            token { id symbol name decimals }
          }
        }
      }
    }
"""

DELEGATE_STATEMENT_QUERY = """
    query GetDelegateStatement($address: Address!, $organizationId: IntID!) {
      delegate(input: { address: $address, organizationId: $organizationId }) {
        id
        statement { statement statementSummary isSeekingDelegation }
        account { address name }
        organization { id name slug }
      }
    }
"""

DAO_PARTICIPANTS_QUERY = """
    query GetDAOParticipants($organizationId: IntID!, $pageSize: Int!) {
      delegates(input: { filters: { organizationId: $organizationId }, page: { limit: $pageSize } }) {
        nodes {
          ... on Delegate {
            id
            delegatorsCount
            votesCount
            account { address name }
            token { id symbol name decimals }
          }
        }
        pageInfo { firstCursor lastCursor count }
      }
    }
"""

DELEGATES_QUERY = """
    query GetDelegates($organizationId: IntID!, $pageSize: Int!, $sortBy: DelegatesSortBy!, $isDescending: Boolean!) {
      delegates(input: {
        filters: { organizationId: $organizationId },
        page: { limit: $pageSize },
        sort: { sortBy: $sortBy, isDescending: $isDescending }
      }) {
        nodes {
          ... on Delegate {
            id
            delegatorsCount
            votesCount
            isPrioritized
            chainId
            account { id address name ens twitter bio picture type }
            statement { statement statementSummary isSeekingDelegation }
            organization { id name slug }
            token { id symbol name decimals }
          }
        }
        pageInfo { firstCursor lastCursor count }
      }
    }
"""


def conversion_note(amount: Any, decimals: Optional[int]) -> str:
    """Explains how to turn a raw token amount into a human-readable one."""
    if decimals:
        return (
            f"To convert to human-readable amount: divide {amount} by 10^{decimals} "
            "(Ethereum-style decimal places)"
        )
    return (
        f"To convert to human-readable amount: divide {amount} by 10^{DEFAULT_TOKEN_DECIMALS} "
        "(default Ethereum token decimals)"
    )


def _token_info(token: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if not token:
        return None
    return {
        "symbol": token.get("symbol"),
        "name": token.get("name"),
        "decimals": token.get("decimals") or DEFAULT_TOKEN_DECIMALS,
    }


def _page_info(connection: Dict[str, Any]) -> Dict[str, Any]:
    page_info = connection.get("pageInfo") or {}
    return {
        "hasNextPage": False,
        "hasPreviousPage": False,
        "startCursor": page_info.get("firstCursor"),
        "endCursor": page_info.get("lastCursor"),
    }


def _delegate_participation(delegate: Dict[str, Any]) -> Dict[str, Any]:
    token = delegate.get("token") or {}
    return {
        "id": delegate.get("id"),
        "organization": delegate.get("organization"),
        "statement": delegate.get("statement") or None,
        "votesCount": delegate.get("votesCount"),
        "delegatorsCount": delegate.get("delegatorsCount"),
        "tokenInfo": _token_info(delegate.get("token")),
        "conversionNote": conversion_note(delegate.get("votesCount"), token.get("decimals")),
    }


async def get_user_profile(client: TallyQueryClient, **params: Any) -> Optional[Dict[str, Any]]:
    """Account details plus the user's delegations and delegate roles, in one request.

    Returns:
        The profile, or None if the address has no Tally account.
    """
    data = parse_input(GetUserProfileInput, params, "get_user_profile")

    result = await client.query(
        USER_PROFILE_QUERY, {"address": data.address, "pageSize": data.page_size}
    ) or {}
    account = result.get("accountV2")
    if not account:
        return None

    dao_participations = []
    for delegation in (result.get("delegatees") or {}).get("nodes") or []:
        token = delegation.get("token") or {}
        dao_participations.append({
            "id": delegation.get("id"),
            "organization": delegation.get("organization"),
            "token": {
                "symbol": token.get("symbol"),
                "name": token.get("name"),
                "decimals": token.get("decimals"),
            },
            "votes": delegation.get("votes"),
            "conversionNote": conversion_note(delegation.get("votes"), token.get("decimals")),
        })

    delegate_participations = [
        _delegate_participation(delegate)
        for delegate in (result.get("delegates") or {}).get("nodes") or []
    ]

    profile = dict(account)
    profile.update({
        "daoParticipations": dao_participations,
        "delegateParticipations": delegate_participations,
        "conversionReminder": PROFILE_CONVERSION_REMINDER,
    })
    return profile


async def get_delegate_statement(client: TallyQueryClient, **params: Any) -> Optional[Dict[str, Any]]:
    """A delegate's statement in one organization, or None if they are not a delegate there."""
    data = parse_input(GetDelegateStatementInput, params, "get_delegate_statement")

    result = await client.query(
        DELEGATE_STATEMENT_QUERY,
        {"address": data.address, "organizationId": data.organization_id},
    )
    return (result or {}).get("delegate") or None


async def get_dao_participants(client: TallyQueryClient, **params: Any) -> Optional[Dict[str, Any]]:
    data = parse_input(GetDaoParticipantsInput, params, "get_dao_participants")

    result = await client.query(
        DAO_PARTICIPANTS_QUERY,
        {"organizationId": data.organization_id, "pageSize": data.page_size},
    )
    connection = (result or {}).get("delegates")
    if connection is None:
        return None

    items = [
        {
            "id": delegate.get("id"),
            "delegatorsCount": delegate.get("delegatorsCount"),
            "votesCount": delegate.get("votesCount"),
            "account": delegate.get("account"),
            "tokenInfo": _token_info(delegate.get("token")),
        }
        for delegate in connection.get("nodes") or []
    ]
    return {
        "items": items,
        "totalCount": (connection.get("pageInfo") or {}).get("count") or 0,
        "pageInfo": _page_info(connection),
        "conversionReminder": VOTES_CONVERSION_REMINDER,
    }


async def get_delegates(client: TallyQueryClient, **params: Any) -> Optional[Dict[str, Any]]:
    """Delegates of an organization, sorted by votes (descending) unless told otherwise."""
    data = parse_input(GetDelegatesInput, params, "get_delegates")

    result = await client.query(
        DELEGATES_QUERY,
        {
            "organizationId": data.organization_id,
            "pageSize": data.page_size,
            "sortBy": data.sort_by,
            "isDescending": data.sort_order == "desc",
        },
    )
    connection = (result or {}).get("delegates")
    if connection is None:
        return None

    items = []
    for delegate in connection.get("nodes") or []:
        token = delegate.get("token") or {}
        item = dict(delegate)
        item["token"] = dict(token, decimals=token.get("decimals") or DEFAULT_TOKEN_DECIMALS)
        item["conversionNote"] = conversion_note(delegate.get("votesCount"), token.get("decimals"))
        items.append(item)

    return {
        "items": items,
        "totalCount": (connection.get("pageInfo") or {}).get("count") or 0,
        "pageInfo": _page_info(connection),
        "conversionReminder": VOTES_CONVERSION_REMINDER,
    }
