"""
Configuration module for the URL importer.

This module centralizes the loading and validation of all configuration
parameters from environment variables. It provides a single `Settings`
class that acts as a container for all configurable values, ensuring
that they are defined in one place and can be easily imported and used
throughout the application.
"""

import os
from typing import Literal

import openai

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36 url-importer/1.0"
)


def _parse_bool(value: str | None, default: bool) -> bool:
    if value is None or not value.strip():
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _parse_models(value: str | None, defaults: list[str]) -> list[str]:
    if not value:
        return list(defaults)
    models = [part.strip() for part in value.split(",") if part.strip()]
    return models or list(defaults)


class Settings:
    """
    A container for all configuration settings, loaded from environment variables.

    This class centralizes configuration, providing default values for optional
    settings and raising errors for missing required settings.
    """

    # --- LLM Provider Configuration ---
    LLM_PROVIDER: Literal["openai", "ollama"]
    OLLAMA_BASE_URL: str | None
    OPENAI_API_KEY: str | None
    AI_MODELS: list[str]

    # --- Note Output ---
    DEFAULT_FOLDER: str
    VAULT_PATH: str
    MAX_FILENAME_LENGTH: int

    # --- Network ---
    REQUEST_TIMEOUT: int
    MAX_RETRIES: int
    MAX_RETRY_BACKOFF_SECONDS: int
    USER_AGENT: str
    ALLOW_PRIVATE_URLS: bool

    # --- Content Detection ---
    CONTENT_DETECTION: bool
    DETECTION_EXCERPT_CHARS: int

    # --- Batch Runs ---
    WORKERS: int

    # --- Logging ---
    LOG_LEVEL: str
    LOG_FORMAT: Literal["console", "json"]

    def __init__(self):
        """
        Loads settings from environment variables and performs validation.
        """
        # --- LLM Provider Configuration ---
        self.LLM_PROVIDER = os.getenv("LLM_PROVIDER", "openai")
        if self.LLM_PROVIDER not in ("openai", "ollama"):
            raise ValueError("LLM_PROVIDER must be 'openai' or 'ollama'")

        if self.LLM_PROVIDER == "ollama":
            self.OLLAMA_BASE_URL = os.getenv(
                "OLLAMA_BASE_URL", "http://localhost:11434/v1/"
            )
            self.OPENAI_API_KEY = None  # Not used for Ollama
            self.AI_MODELS = _parse_models(
                os.getenv("AI_MODELS"), ["gemma3:27b", "gemma3:12b"]
            )
        else:  # openai
            self.OLLAMA_BASE_URL = None
            self.OPENAI_API_KEY = self._get_required_env("OPENAI_API_KEY")
            self.AI_MODELS = _parse_models(
                os.getenv("AI_MODELS"), ["gpt-5-mini", "o4-mini"]
            )

        # --- Note Output ---
        self.DEFAULT_FOLDER = os.getenv("DEFAULT_FOLDER", "Sources").strip().strip("/")
        self.VAULT_PATH = os.getenv("VAULT_PATH", ".")
        self.MAX_FILENAME_LENGTH = max(1, int(os.getenv("MAX_FILENAME_LENGTH", 100)))

        # --- Network ---
        self.REQUEST_TIMEOUT = int(os.getenv("REQUEST_TIMEOUT", 60))
        self.MAX_RETRIES = int(os.getenv("MAX_RETRIES", 3))
        self.MAX_RETRY_BACKOFF_SECONDS = int(
            os.getenv("MAX_RETRY_BACKOFF_SECONDS", 30)
        )
        self.USER_AGENT = os.getenv("USER_AGENT", DEFAULT_USER_AGENT)
        self.ALLOW_PRIVATE_URLS = _parse_bool(os.getenv("ALLOW_PRIVATE_URLS"), False)

        # --- Content Detection ---
        self.CONTENT_DETECTION = _parse_bool(os.getenv("CONTENT_DETECTION"), True)
        self.DETECTION_EXCERPT_CHARS = max(
            1, int(os.getenv("DETECTION_EXCERPT_CHARS", 3000))
        )

        # --- Batch Runs ---
        self.WORKERS = max(1, int(os.getenv("WORKERS", 4)))

        # --- Logging ---
        self.LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
        self.LOG_FORMAT = os.getenv("LOG_FORMAT", "console").lower()
        if self.LOG_FORMAT not in ("console", "json"):
            raise ValueError("LOG_FORMAT must be 'console' or 'json'")

    def _get_required_env(self, var_name: str) -> str:
        """
        Gets a required environment variable, raising an error if it's not set.
        """
        value = os.getenv(var_name)
        if value is None:
            raise ValueError(f"Required environment variable '{var_name}' is not set.")
        return value


def setup_libraries(settings: Settings) -> None:
    """
    Configures third-party libraries based on the application settings.
    """
    if settings.LLM_PROVIDER == "ollama":
        openai.base_url = settings.OLLAMA_BASE_URL
        openai.api_key = "dummy"
    else:
        openai.api_key = settings.OPENAI_API_KEY
