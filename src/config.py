from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    log_level: str = "INFO"
    database_url: str | None = None
    supabase_url: str
    supabase_service_role_key: str
    internal_api_secret: str | None = None
    vapi_api_base: str = "https://api.vapi.ai"
    vapi_secret_key: str | None = None
    vapi_webhook_secret: str | None = None
    vapi_timeout_seconds: float = 12.0
    default_vapi_phone_number_id: str | None = None
    default_vapi_assistant_id: str | None = None
    default_calling_country_code: str = "+1"
    campaign_auto_launch_delay_seconds: float = 0.8
    facebook_graph_base: str = "https://graph.facebook.com"
    facebook_graph_version: str = "v18.0"
    facebook_app_secret: str | None = None
    facebook_webhook_verify_token: str | None = None
    facebook_timeout_seconds: float = 10.0
    test_lead_prefix: str = "test_lead_"
    test_lead_ttl_seconds: int = 3600
    webhook_contact_write_policy: str = "append"  # append | dedupe
    observability_export_url: str | None = None
    observability_export_bearer_token: str | None = None
    observability_export_timeout_seconds: float = 3.0

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )


settings = Settings()
