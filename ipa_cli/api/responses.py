"""
Decodes storefront replies into explicit success or failure models.

Each endpoint has its own discriminant rule, evaluated once here so that the
protocol code only ever branches on the decoded type.
"""

from typing import Any, Optional, TypeVar, Union

from pydantic import BaseModel, Field, ValidationError, field_validator

from ipa_cli.exceptions import StorefrontError
from ipa_cli.models.license import LicenseGrant

CHALLENGE_MESSAGE = "MZFinance.BadLogin.Configurator_message"
PURCHASE_SUCCESS_DOC_TYPE = "purchaseSuccess"


class FailureResponse(BaseModel):
    """A failure reply from any storefront endpoint."""

    failure_type: Optional[str] = Field(None, alias="failureType")
    customer_message: Optional[str] = Field(None, alias="customerMessage")
    status: Optional[int] = None

    class Config:
        """Pydantic model configuration."""

        populate_by_name = True
        extra = "ignore"

    @field_validator("failure_type", "customer_message", mode="before")
    @classmethod
    def stringify(cls, v: Any) -> Optional[str]:
        """Failure codes arrive as strings or integers depending on the endpoint."""
        if v is None:
            return None
        return str(v)

    @property
    def is_challenge(self) -> bool:
        """True when sign-in stopped only because a second factor is needed."""
        return not self.failure_type and self.customer_message == CHALLENGE_MESSAGE


class SignInSuccess(BaseModel):
    """A successful sign-in reply."""

    person_id: str = Field(alias="dsPersonId")
    token: str = Field(alias="passwordToken")
    account_info: dict[str, Any] = Field(default_factory=dict, alias="accountInfo")

    class Config:
        """Pydantic model configuration."""

        populate_by_name = True
        extra = "ignore"

    @field_validator("person_id", mode="before")
    @classmethod
    def stringify_person_id(cls, v: Any) -> str:
        return str(v)

    @property
    def account_name(self) -> Optional[str]:
        return self.account_info.get("appleId")

    @property
    def display_name(self) -> Optional[str]:
        address = self.account_info.get("address") or {}
        name = " ".join(
            part for part in (address.get("firstName"), address.get("lastName")) if part
        )
        return name or None


class PurchaseSuccess(BaseModel):
    """A successful purchase reply."""

    jingle_doc_type: str = Field(alias="jingleDocType")
    status: int = 0
    metrics: dict[str, Any] = Field(default_factory=dict)

    class Config:
        """Pydantic model configuration."""

        populate_by_name = True
        extra = "ignore"


SignInResult = Union[SignInSuccess, FailureResponse]
PermitResult = Union[LicenseGrant, FailureResponse]
PurchaseResult = Union[PurchaseSuccess, FailureResponse]

ModelT = TypeVar("ModelT", bound=BaseModel)


def _validate(model: type[ModelT], data: dict[str, Any], endpoint: str) -> ModelT:
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise StorefrontError(
            f"Malformed {endpoint} reply from the storefront: {e.error_count()} "
            f"invalid field(s)."
        ) from e


def decode_sign_in(data: dict[str, Any]) -> SignInResult:
    """Sign-in failed unless the reply sets ``m-allowed``."""
    if not data.get("m-allowed"):
        return _validate(FailureResponse, data, "sign-in")
    return _validate(SignInSuccess, data, "sign-in")


def decode_permit(data: dict[str, Any]) -> PermitResult:
    """Permit failed when the reply carries a ``failureType``."""
    if "failureType" in data:
        return _validate(FailureResponse, data, "permit")
    return _validate(
        LicenseGrant,
        {"entries": data.get("songList") or [], "metrics": data.get("metrics") or {}},
        "permit",
    )


def decode_purchase(data: dict[str, Any]) -> PurchaseResult:
    """
    Purchase failed when the reply carries a ``failureType``, is not a
    ``purchaseSuccess`` document, or has a non-zero status.
    """
    if (
        "failureType" in data
        or data.get("jingleDocType") != PURCHASE_SUCCESS_DOC_TYPE
        or data.get("status") != 0
    ):
        return _validate(FailureResponse, data, "purchase")
    return _validate(PurchaseSuccess, data, "purchase")
