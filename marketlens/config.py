from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # OpenRouter (OpenAI-compatible gateway)
    openrouter_api_key: str = ""
    openrouter_base_url: str = "https://openrouter.ai/api/v1"
    default_model: str = "openai/gpt-4o-mini"
    openrouter_model: str = ""
    planner_model: str = ""  # optional override for search planning only
    analysis_model: str = ""  # optional override for trend synthesis only
    llm_timeout_seconds: float = 60.0
    planner_temperature: float = 0.3
    planner_max_tokens: int = 800
    analysis_temperature: float = 0.3
    analysis_max_tokens: int = 2000

    # Search provider
    search_provider: str = "tavily"  # tavily
    tavily_api_key: str = ""
    tavily_base_url: str = "https://api.tavily.com"
    search_timeout_seconds: float = 30.0
    search_max_retries: int = 3
    search_rate_limit_backoff_ms: int = 2000
    search_server_error_backoff_ms: int = 1000
    search_primary_delay_ms: int = 1000
    search_secondary_delay_ms: int = 800
    search_secondary_max_results: int = 3
    search_excluded_domains: str = (
        "reddit.com,quora.com,yahoo.com/answers,wiki.answers.com,pinterest.com"
    )

    # Pipeline
    max_concurrent_runs: int = 5
    pipeline_timeout_seconds: float = 300.0  # 0 disables the run timeout

    # App
    log_dir: str = "logs"
    app_log_level: str = "INFO"
    noisy_log_level: str = "WARNING"

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @property
    def excluded_domain_list(self) -> list[str]:
        return [d.strip() for d in self.search_excluded_domains.split(",") if d.strip()]


settings = Settings()
