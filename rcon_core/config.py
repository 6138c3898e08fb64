"""
Core configuration management
"""
from pathlib import Path
from typing import Optional
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """RCON client settings"""

    # Timeouts
    response_timeout_sec: float = 1.0  # bound on every receive, doubles as UDP end-of-response
    connect_timeout_sec: float = 5.0

    # Buffers and limits
    udp_buffer_size: int = 8192
    max_packet_bytes: int = 1024 * 1024

    # Interactive mode
    input_queue_size: int = 16

    # Logging
    log_dir: Optional[Path] = None
    log_level: str = "WARNING"

    class Config:
        env_prefix = "RCON_"
        env_file = ".env"


settings = Settings()
