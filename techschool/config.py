from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file='.env', extra='ignore')

    app_name: str = 'Escuela Tecnica Admin'
    app_env: str = 'local'
    app_timezone: str = 'America/La_Paz'
    database_url: str = 'sqlite:///./escuela_tecnica.db'
    log_level: str = 'INFO'
    jwt_secret: str = 'change-me'
    jwt_expires_minutes: int = 1440
    password_hash_iterations: int = 120000
    bootstrap_admin_email: str = 'admin@escuelatecnica.com'
    bootstrap_admin_password: str = ''
    default_level_price: float = 450.0
    notifications_page_size: int = 50
    db_slow_query_ms: int = 100
    request_slow_ms: int = 200


settings = Settings()
