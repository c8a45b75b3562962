"""Pydantic input models for the governance query services."""

from typing import Any, Dict, Literal, Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic import ValidationError as PydanticValidationError

from tallymcp.domain.errors import ValidationError

ETH_ADDRESS_PATTERN = r"^0x[a-fA-F0-9]{40}$"
DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100

ModelT = TypeVar("ModelT", bound=BaseModel)


class ServiceInput(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)


# --- Organizations ---

class ListOrganizationsInput(ServiceInput):
    page: int = Field(1, ge=1, description="Page number (1-based)")
    page_size: int = Field(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE)
    chain_id: Optional[str] = Field(None, description="Chain filter, e.g. 'eip155:1'")
    has_logo: Optional[bool] = None
    sort_by: Literal["id", "name", "explore", "popular"] = "name"
    sort_order: Literal["asc", "desc"] = "asc"


class GetOrganizationInput(ServiceInput):
    organization_id: Optional[str] = Field(None, min_length=1)
    organization_slug: Optional[str] = Field(None, min_length=1)

    @model_validator(mode="after")
    def _exactly_one_identifier(self) -> "GetOrganizationInput":
        if bool(self.organization_id) == bool(self.organization_slug):
            raise ValueError(
                "Either organization_id or organization_slug must be provided, but not both"
            )
        return self


class GetOrganizationsWithActiveProposalsInput(ServiceInput):
    page: int = Field(1, ge=1)
    page_size: int = Field(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE)
    min_active_proposals: Optional[int] = Field(None, ge=1)
    chain_id: Optional[str] = None


# --- Proposals ---

class ListProposalsInput(ServiceInput):
    organization_id: str = Field(..., min_length=1)
    page: int = Field(1, ge=1)
    page_size: int = Field(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE)
    governor_id: Optional[str] = None
    proposer: Optional[str] = Field(None, description="Address that created the proposal")
    sort_order: Literal["asc", "desc"] = "desc"


class GetProposalInput(ServiceInput):
    proposal_id: str = Field(..., min_length=1)
    organization_id: Optional[str] = None
    organization_slug: Optional[str] = None


class GetActiveProposalsInput(ServiceInput):
    page: int = Field(1, ge=1)
    page_size: int = Field(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE)
    chain_id: Optional[str] = None
    organization_id: Optional[str] = None


# --- Users ---

class GetUserProfileInput(ServiceInput):
    address: str = Field(..., pattern=ETH_ADDRESS_PATTERN)
    page_size: int = Field(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE)


class GetDelegateStatementInput(ServiceInput):
    address: str = Field(..., pattern=ETH_ADDRESS_PATTERN)
    organization_id: str = Field(..., min_length=1)


class GetDaoParticipantsInput(ServiceInput):
    organization_id: str = Field(..., min_length=1)
    page: int = Field(1, ge=1)
    page_size: int = Field(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE)


class GetDelegatesInput(ServiceInput):
    organization_id: str = Field(..., min_length=1)
    page_size: int = Field(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE)
    sort_by: Literal["id", "votes", "delegators", "isPrioritized"] = "votes"
    sort_order: Literal["asc", "desc"] = "desc"


def parse_input(model: Type[ModelT], params: Dict[str, Any], operation: str) -> ModelT:
    """Validates service parameters, dropping None values so defaults apply.

    Raises:
        ValidationError: With the pydantic error list as ``data``.
    """
    try:
        return model(**{key: value for key, value in params.items() if value is not None})
    except PydanticValidationError as e:
        raise ValidationError(
            f"Invalid input for {operation}",
            e.errors(include_url=False, include_context=False),
        ) from e
