from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    openai_api_key: str = ""
    openai_model: str = "gpt-4.1"
    ai_temperature: float = 0.9

    # Overs at or above this complexity go to the LLM strategy (1-10 scale)
    ai_complexity_threshold: int = 7
    ai_cost_per_1k_tokens: float = 0.01

    simulation_cache_size: int = 100

    # Pause between balls when a simulated over is streamed to a client
    ball_delay_seconds: float = 1.0

    database_path: str = "data/cricsim.db"
    player_modifiers_path: str = "data/player_modifiers.json"

    # Rain-revised targets are multiplied by a factor in [1 - jitter, 1 + jitter]
    rain_target_jitter: float = 0.05

    # Phase boundaries are 6/15 overs; when True they scale with the innings length
    scale_phases_to_format: bool = False

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


settings = Settings()
