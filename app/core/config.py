from typing import Optional
from pydantic_settings import BaseSettings
from dotenv import load_dotenv


load_dotenv()


class Settings(BaseSettings):
    app_name: str = "CupTrace API"
    debug: bool = False
    database_url: str = ""
    host: str = "127.0.0.1"
    port: int = 8000
    secret_key: str = ""
    allowed_hosts: str = ""
    log_file: str = "logs/application.log"

    # Notarization
    cardano_network: str = "preprod"
    notary_relay_url: Optional[str] = None
    notary_timeout_seconds: float = 10.0


settings = Settings()

if not settings.secret_key:
    raise RuntimeError("Secret key not configured.")
