from pydantic import AliasChoices, BaseModel, Field


class LLMSettings(BaseModel):
    model: str = "gemini/gemini-2.5-flash"
    temperature: float = 0.2
    api_key: str = Field(
        "",
        validation_alias=AliasChoices(
            "api_key", "BAZAAR_LLM__API_KEY", "LLM_API_KEY"
        ),
    )
    timeout_seconds: float = 30.0
