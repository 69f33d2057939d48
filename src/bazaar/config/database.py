from pydantic import AliasChoices, BaseModel, Field


class DatabaseSettings(BaseModel):
    url: str = Field(
        "sqlite:///./bazaar.db",
        validation_alias=AliasChoices(
            "url", "BAZAAR_DATABASE__URL", "BAZAAR_DB__URL", "DATABASE_URL"
        ),
    )
    echo: bool = False
