# wildyak/transport/schemas.py
from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class WebMessageIn(BaseModel):
    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)

    text: str | None = Field(default=None, max_length=4096)
    message_id: str | None = Field(
        default=None, max_length=128, validation_alias=AliasChoices("message_id", "id")
    )
    sender_id: str | None = None
    sender_name: str | None = None
    payload: str | None = None
    timestamp: int | None = None
