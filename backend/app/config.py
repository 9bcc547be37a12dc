import os

from pydantic import BaseModel

# USER: postgres, PASS: launchnet_dev, DB: launchnet
DB_USER = os.getenv("POSTGRES_USER", "postgres")
DB_PASS = os.getenv("POSTGRES_PASSWORD", "launchnet_dev")
DB_HOST = os.getenv("POSTGRES_HOST", "localhost")
DB_PORT = os.getenv("POSTGRES_PORT", "5432")
DB_NAME = os.getenv("POSTGRES_DB", "launchnet")


class Settings(BaseModel):
    database_url: str = os.getenv(
        "DATABASE_URL",
        f"postgresql+psycopg://{DB_USER}:{DB_PASS}@{DB_HOST}:{DB_PORT}/{DB_NAME}"
    )
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    # Replay window: seconds a message may be old / ahead of the server clock
    timestamp_max_age: int = int(os.getenv("TIMESTAMP_MAX_AGE", "300"))
    timestamp_max_skew: int = int(os.getenv("TIMESTAMP_MAX_SKEW", "60"))

    # Li-ion reference curve for the battery percentage
    battery_min_voltage: float = float(os.getenv("BATTERY_MIN_VOLTAGE", "3.0"))
    battery_max_voltage: float = float(os.getenv("BATTERY_MAX_VOLTAGE", "4.2"))
    low_battery_threshold: int = int(os.getenv("LOW_BATTERY_THRESHOLD", "20"))

    # "relay": network of the forwarding relay, "any_relay": first relay found
    discovery_network_policy: str = os.getenv("DISCOVERY_NETWORK_POLICY", "relay")

    command_ack_timeout: int = int(os.getenv("COMMAND_ACK_TIMEOUT", "120"))
    timeout_sweep_interval: int = int(os.getenv("TIMEOUT_SWEEP_INTERVAL", "30"))

    admin_api_key: str | None = os.getenv("ADMIN_API_KEY") or None


settings = Settings()
