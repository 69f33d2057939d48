from pydantic import AliasChoices, BaseModel, Field, HttpUrl


class TelemetrySettings(BaseModel):
    enabled: bool = False
    otel_service_name: str = Field(
        "bazaar-core",
        validation_alias=AliasChoices(
            "otel_service_name",
            "BAZAAR_TELEMETRY__OTEL_SERVICE_NAME",
            "OTEL_SERVICE_NAME",
        ),
    )
    otel_exporter_otlp_endpoint: HttpUrl = Field(
        "http://jaeger:4317",
        validation_alias=AliasChoices(
            "otel_exporter_otlp_endpoint",
            "BAZAAR_TELEMETRY__OTEL_EXPORTER_OTLP_ENDPOINT",
            "OTEL_EXPORTER_OTLP_ENDPOINT",
        ),
    )
