from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field

U32_MAX = 2**32 - 1

UInt32 = Annotated[int, Field(strict=True, ge=0, le=U32_MAX)]


class TicketUpdate(BaseModel):
    """The single record tracked and broadcast: the ticket being served and its counter."""
    model_config = ConfigDict(frozen=True)

    ticket_number: UInt32
    counter: UInt32
