from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_name: str = "Orchid Monitor"

    # Storage
    sqlite_path: str = Field(default="orchid_monitor.db")

    # Logging ("" disables the rotating file)
    log_file: str = "orchid_monitor.log"
    log_level: str = "INFO"

    # MQTT transport
    mqtt_enabled: bool = True
    mqtt_host: str = "broker.hivemq.com"
    mqtt_port: int = 1883
    mqtt_topic: str = "orquideas/datos/ambiental"
    mqtt_qos: int = 0
    mqtt_client_id: str = ""  # empty -> broker assigns one
    mqtt_username: Optional[str] = None
    mqtt_password: Optional[str] = None
    mqtt_keepalive: int = 60

    # History
    history_default_limit: int = 20
    history_max_limit: int = 1000
    fallback_capacity: int = 500  # ring buffer used while SQLite is unreachable

    # Default optimal range (used when no policy row is stored)
    default_min_temp: Optional[float] = 18.0
    default_max_temp: Optional[float] = 24.0
    default_min_humidity: Optional[float] = 75.0
    default_max_humidity: Optional[float] = 85.0

    # Simulator
    sim_autostart: bool = False
    sim_pattern: str = "alternate"
    sim_interval_ms: int = 5000
    sim_seed: Optional[int] = None


settings = Settings()
