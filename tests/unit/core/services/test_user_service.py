import pytest

from tallymcp.core.services.user_service import (
    PROFILE_CONVERSION_REMINDER,
    VOTES_CONVERSION_REMINDER,
    conversion_note,
    get_dao_participants,
    get_delegate_statement,
    get_delegates,
    get_user_profile,
)
from tallymcp.domain.errors import ValidationError

ADDRESS = "0x1234567890abcdef1234567890ABCDEF12345678"
UNI = {"symbol": "UNI", "name": "Uniswap", "decimals": 18}


def test_conversion_note_uses_token_decimals():
    assert conversion_note("1000", 6) == (
        "To convert to human-readable amount: divide 1000 by 10^6 (Ethereum-style decimal places)"
    )
    assert "10^18 (default Ethereum token decimals)" in conversion_note("1000", None)


@pytest.mark.asyncio
@pytest.mark.parametrize("address", ["0x123", "1234567890abcdef1234567890abcdef12345678", ""])
async def test_user_profile_rejects_bad_address(mock_client, address):
    with pytest.raises(ValidationError):
        await get_user_profile(mock_client, address=address)
    mock_client.query.assert_not_awaited()


@pytest.mark.asyncio
async def test_user_profile(mock_client):
    mock_client.query.return_value = {
        "accountV2": {"id": ADDRESS, "address": ADDRESS, "ens": "alice.eth"},
        "delegatees": {"nodes": [
            {"id": "d1", "organization": {"id": "1", "name": "Uniswap"}, "token": UNI, "votes": "5000"},
        ]},
        "delegates": {"nodes": [
            {"id": "g1", "organization": {"id": "1"}, "statement": "", "votesCount": "7000",
             "delegatorsCount": 3, "token": {"symbol": "UNI", "name": "Uniswap", "decimals": None}},
        ]},
    }

    profile = await get_user_profile(mock_client, address=ADDRESS, page_size=5)

    assert mock_client.query.await_args.args[1] == {"address": ADDRESS, "pageSize": 5}
    assert profile["ens"] == "alice.eth"
    assert profile["daoParticipations"][0]["votes"] == "5000"
    assert "divide 5000 by 10^18" in profile["daoParticipations"][0]["conversionNote"]
    delegate = profile["delegateParticipations"][0]
    assert delegate["statement"] is None
    assert delegate["tokenInfo"]["decimals"] == 18
    assert profile["conversionReminder"] == PROFILE_CONVERSION_REMINDER


@pytest.mark.asyncio
async def test_user_profile_unknown_account(mock_client):
    mock_client.query.return_value = {"accountV2": None}

    assert await get_user_profile(mock_client, address=ADDRESS) is None


@pytest.mark.asyncio
async def test_delegate_statement(mock_client):
    delegate = {"id": "g1", "statement": {"statement": "I vote for growth"}}
    mock_client.query.return_value = {"delegate": delegate}

    assert await get_delegate_statement(mock_client, address=ADDRESS, organization_id="1") == delegate
    assert mock_client.query.await_args.args[1] == {"address": ADDRESS, "organizationId": "1"}

    mock_client.query.return_value = {"delegate": None}
    assert await get_delegate_statement(mock_client, address=ADDRESS, organization_id="1") is None


@pytest.mark.asyncio
async def test_dao_participants(mock_client):
    mock_client.query.return_value = {"delegates": {
        "nodes": [{"id": "g1", "delegatorsCount": 4, "votesCount": "900", "account": {"address": ADDRESS},
                   "token": UNI}],
        "pageInfo": {"firstCursor": "c0", "lastCursor": "c1", "count": 1},
    }}

    result = await get_dao_participants(mock_client, organization_id="1")

    assert result["items"][0]["tokenInfo"] == UNI
    assert result["totalCount"] == 1
    assert result["pageInfo"] == {
        "hasNextPage": False, "hasPreviousPage": False, "startCursor": "c0", "endCursor": "c1",
    }
    assert result["conversionReminder"] == VOTES_CONVERSION_REMINDER


@pytest.mark.asyncio
async def test_dao_participants_missing_connection(mock_client):
    mock_client.query.return_value = {}

    assert await get_dao_participants(mock_client, organization_id="1") is None


@pytest.mark.asyncio
async def test_delegates_default_sort_and_decimals(mock_client):
    mock_client.query.return_value = {"delegates": {"nodes": [
        {"id": "g1", "votesCount": "100", "token": {"symbol": "X", "decimals": None}},
    ]}}

    result = await get_delegates(mock_client, organization_id="1")

    assert mock_client.query.await_args.args[1] == {
        "organizationId": "1", "pageSize": 20, "sortBy": "votes", "isDescending": True,
    }
    item = result["items"][0]
    assert item["token"]["decimals"] == 18
    assert "divide 100 by 10^18" in item["conversionNote"]


@pytest.mark.asyncio
async def test_delegates_rejects_unknown_sort(mock_client):
    with pytest.raises(ValidationError, match="Invalid input for get_delegates"):
        await get_delegates(mock_client, organization_id="1", sort_by="age")
