"""
File: gridsim/settings.py
Purpose: Environment-backed configuration for the grid simulation service.
Key responsibilities:
- Parse RabbitMQ/MySQL collaborator settings.
- Define robot, task, charging and deadlock parameters for the engine.
"""

from dataclasses import dataclass
import os


def _bool_env(name: str, default: bool = False) -> bool:
    """Parse a 0/1 style boolean env var with a fallback."""
    raw = os.getenv(name, "")
    if raw == "":
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    """Simulation configuration parsed from environment."""
    api_host: str = os.getenv("API_HOST", "0.0.0.0")
    api_port: int = int(os.getenv("API_PORT", "8000"))
    rabbit_host: str = os.getenv("RABBITMQ_HOST", "rabbitmq")
    rabbit_port: int = int(os.getenv("RABBITMQ_PORT", "5672"))
    rabbit_user: str = os.getenv("RABBITMQ_USER", "amr")
    rabbit_pass: str = os.getenv("RABBITMQ_PASS", "amrpass")
    mysql_host: str = os.getenv("MYSQL_HOST", "mysql")
    mysql_port: int = int(os.getenv("MYSQL_PORT", "3306"))
    mysql_user: str = os.getenv("MYSQL_USER", "amr")
    mysql_password: str = os.getenv("MYSQL_PASSWORD", "amrpass")
    mysql_db: str = os.getenv("MYSQL_DB", "gridsim")
    exchange_name: str = "gridsim.events"
    broadcast_mq: bool = _bool_env("BROADCAST_MQ", False)
    persist_runs: bool = _bool_env("PERSIST_RUNS", False)
    sim_tick_hz: int = int(os.getenv("SIM_TICK_HZ", "5"))
    max_ticks: int = int(os.getenv("MAX_TICKS", "10000"))
    default_max_battery: int = int(os.getenv("DEFAULT_MAX_BATTERY", "100"))
    movement_cost_per_cell: int = int(os.getenv("MOVEMENT_COST_PER_CELL", "1"))
    task_work_duration: int = int(os.getenv("TASK_WORK_DURATION", "3"))
    task_battery_cost: int = int(os.getenv("TASK_BATTERY_COST", "5"))
    charge_rate: int = int(os.getenv("CHARGE_RATE", "10"))
    low_battery_fraction: float = float(os.getenv("LOW_BATTERY_FRACTION", "0.20"))
    deadlock_wait_threshold: int = int(os.getenv("DEADLOCK_WAIT_THRESHOLD", "3"))
    default_strategy: str = os.getenv("DEFAULT_STRATEGY", "nearest")


settings = Settings()


def rabbit_url() -> str:
    return f"amqp://{settings.rabbit_user}:{settings.rabbit_pass}@{settings.rabbit_host}:{settings.rabbit_port}/"
