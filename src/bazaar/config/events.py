from pydantic import AliasChoices, BaseModel, Field


class EventSettings(BaseModel):
    nats_url: str = Field(
        "nats://localhost:4222",
        validation_alias=AliasChoices(
            "nats_url", "BAZAAR_EVENTS__NATS_URL", "NATS_URL"
        ),
    )
    subject_prefix: str = "bazaar"
