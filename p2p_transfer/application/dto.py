"""
Input and output records of the use cases.
"""

from pydantic import BaseModel, ConfigDict, Field


class TransferInput(BaseModel):
    """Raw transfer request as received from a caller."""

    payer_id: str
    payee_id: str
    value: int = Field(..., gt=0, description="Amount in minor units")
    currency: str | None = None
    idempotency_key: str | None = None


class TransferOutput(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    payer: str
    payee: str
    value: int
    currency: str
    status: str
    created_at: str
    notified: bool = True


class DocumentOutput(BaseModel):
    type: str
    value: str


class WalletOutput(BaseModel):
    currency: str
    amount: int


class UserOutput(BaseModel):
    """User as shown to callers; the password is never included."""

    model_config = ConfigDict(frozen=True)

    id: str
    full_name: str
    document: DocumentOutput
    email: str
    wallet: WalletOutput
    type: str
    created_at: str


class CreateUserInput(BaseModel):
    full_name: str
    email: str
    password: str
    document_type: str
    document_number: str
    type: str
    balance: int = Field(default=0, ge=0)
    currency: str | None = None
