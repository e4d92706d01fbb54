"""Wire contract of the intercepted ``POST /api/transfer`` endpoint."""
from typing import Literal, Union

from pydantic import BaseModel, ConfigDict, Field, StrictFloat, StrictInt


class TransferRequest(BaseModel):
    """Body the page sends. ``amount`` must be a JSON number, never a string."""
    recipient: str = Field(min_length=1)
    amount: Union[StrictInt, StrictFloat]


class TransferSuccess(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    status: Literal["success"] = "success"
    transaction_id: str = Field(alias="transactionId")


class TransferError(BaseModel):
    error: str
