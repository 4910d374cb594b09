"""
ShipLabel Backend - Application Configuration
===============================================

What:  Centralized configuration management using Pydantic Settings.
How:   Pydantic Settings reads from environment variables (or .env file),
       validates types/ranges, and provides a singleton `settings` object.
Who:   Imported by main.py (application factory) and the test suite.
When:  Loaded once at module import time; checked again during startup.

Configuration Groups:
    - Scratch storage:  where transient barcode images live
    - Label generation: deadline, barcode geometry, PDF compression
    - Sessions & auth:  cookie signing, bootstrap account, bcrypt cost
    - Server:           host, port, log level
"""

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

DEFAULT_SESSION_SECRET = "change-me-session-secret"
DEFAULT_PASSWORD = "test123"


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings have development defaults. Production deployments MUST
    override SESSION_SECRET and DEFAULT_PASSWORD.
    """

    # ── Scratch Storage ───────────────────────────────────────────────────
    # What: Directory holding one <delivery-id>.png per in-flight request.
    # Cleared on every startup; nothing in it outlives a request.
    scratch_dir: str = Field(default="./scratch/barcodes")

    # ── Label Generation ──────────────────────────────────────────────────
    # What: Upper bound (seconds) on render + compose + stream for one label.
    generation_timeout: float = Field(default=30.0, ge=1.0, le=300.0)

    # What: Deflate-compress PDF page content streams.
    # Tests turn this off so label text can be asserted in the raw bytes.
    pdf_compression: bool = Field(default=True)

    # What: Code-128 geometry handed to python-barcode's ImageWriter (millimetres).
    barcode_module_width: float = Field(default=0.2, gt=0.0, le=2.0)
    barcode_module_height: float = Field(default=10.0, gt=0.0, le=100.0)
    barcode_font_size: int = Field(default=10, ge=1, le=48)

    # ── Sessions ──────────────────────────────────────────────────────────
    session_secret: str = Field(default=DEFAULT_SESSION_SECRET)
    session_max_age: int = Field(default=24 * 60 * 60, ge=60)  # seconds
    secure_cookies: bool = Field(default=False)

    # ── Bootstrap Account ─────────────────────────────────────────────────
    # What: Account created in the in-memory user directory at startup.
    default_username: str = Field(default="test")
    default_password: str = Field(default=DEFAULT_PASSWORD)

    # What: bcrypt cost factor (log2 rounds). 4 is the library minimum.
    bcrypt_rounds: int = Field(default=10, ge=4, le=16)

    # ── Server ────────────────────────────────────────────────────────────
    backend_host: str = Field(default="0.0.0.0")
    backend_port: int = Field(default=3000, ge=1024, le=65535)
    log_level: str = Field(default="INFO")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensures log level is a valid Python logging level name."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper = v.upper()
        if upper not in valid_levels:
            raise ValueError(f"Invalid log_level '{v}'. Must be one of: {valid_levels}")
        return upper

    # ── Pydantic Settings Config ──────────────────────────────────────────
    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,  # SCRATCH_DIR and scratch_dir both work
    }

    def validate_required_for_production(self) -> None:
        """
        What:  Validates that security-sensitive settings were overridden.
        When:  Called during app startup (lifespan).
        How:   Collects every problem and raises a single ValueError.
        """
        errors = []
        if self.session_secret == DEFAULT_SESSION_SECRET:
            errors.append(
                "SESSION_SECRET is using the built-in default. "
                "Set it to a long random string."
            )
        if self.default_password == DEFAULT_PASSWORD:
            errors.append(
                "DEFAULT_PASSWORD is using the built-in default. "
                "Set it before exposing the service."
            )
        if errors:
            raise ValueError(
                "Configuration validation failed:\n" + "\n".join(f"  - {e}" for e in errors)
            )


# Singleton instance, imported by the application factory
settings = Settings()
