import logging
import os
import sys
from dataclasses import dataclass

from dotenv import dotenv_values

# --- Defaults ---
DEFAULT_HOST = "api.openai.com"
DEFAULT_MODEL = "gpt-4o-mini"
DEFAULT_CONCURRENCY = 5
DEFAULT_ENV_FILE = ".env"

# --- Keys recognized in the .env file ---
ENV_LANGUAGES = "LANGUAGES"
ENV_OPENAI_API_KEY = "OPENAI_API_KEY"
ENV_OPENAI_HOST = "OPENAI_HOST"
ENV_MODEL = "MODEL"


class ConfigError(ValueError):
    """Raised when the effective configuration is incomplete or invalid."""


@dataclass(frozen=True)
class Config:
    languages: tuple[str, ...]
    openai_key: str
    openai_host: str = DEFAULT_HOST
    model: str = DEFAULT_MODEL
    concurrency: int = DEFAULT_CONCURRENCY
    verbose: bool = False
    skip_backup: bool = False
    force: bool = False

    @property
    def base_url(self) -> str:
        """Base URL of the chat completion API derived from the configured host."""
        host = self.openai_host.rstrip("/")
        if "://" not in host:
            host = f"https://{host}"
        if not host.endswith("/v1"):
            host = f"{host}/v1"
        return host


def gather_languages(value: str | None) -> list[str]:
    """Splits a comma separated list of language codes."""
    if not value:
        return []
    return [code.strip() for code in value.split(",") if code.strip()]


def load_env_file(path: str = DEFAULT_ENV_FILE) -> dict[str, str]:
    """Reads KEY=value pairs from a .env file without touching os.environ."""
    if not os.path.isfile(path):
        return {}
    return {key: value for key, value in dotenv_values(path).items() if value is not None}


def resolve_config(
    languages: list[str] | None = None,
    openai_key: str = "",
    openai_host: str = "",
    model: str = "",
    concurrency: int | None = None,
    verbose: bool = False,
    skip_backup: bool = False,
    force: bool = False,
    env_file: str = DEFAULT_ENV_FILE,
) -> Config:
    """
    Merges command line values with the .env file and the defaults.

    A non-empty command line value wins over the .env file, which wins over the
    built-in default.

    Raises:
        ConfigError: if no target language or API key could be resolved, or if
            the concurrency is not a positive number.
    """
    env_vars = load_env_file(env_file)

    resolved_languages = languages or gather_languages(env_vars.get(ENV_LANGUAGES))
    resolved_key = openai_key or env_vars.get(ENV_OPENAI_API_KEY, "")
    resolved_host = openai_host or env_vars.get(ENV_OPENAI_HOST) or DEFAULT_HOST
    resolved_model = model or env_vars.get(ENV_MODEL) or DEFAULT_MODEL
    resolved_concurrency = DEFAULT_CONCURRENCY if concurrency is None else concurrency

    required_values = {
        "languages (-l or LANGUAGES in .env)": resolved_languages,
        "OpenAI API key (-k or OPENAI_API_KEY in .env)": resolved_key,
    }
    missing = [name for name, value in required_values.items() if not value]
    if missing:
        raise ConfigError(f"Missing required settings: {', '.join(missing)}")
    if resolved_concurrency < 1:
        raise ConfigError(f"Concurrency must be at least 1, got {resolved_concurrency}")

    return Config(
        languages=tuple(resolved_languages),
        openai_key=resolved_key,
        openai_host=resolved_host,
        model=resolved_model,
        concurrency=resolved_concurrency,
        verbose=verbose,
        skip_backup=skip_backup,
        force=force,
    )


def setup_logging(verbose: bool = False):
    """Configures the root logger; verbose switches the application loggers to DEBUG."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stdout,
    )

    app_level = logging.DEBUG if verbose else logging.INFO
    logging.getLogger("ai_translate").setLevel(app_level)

    # The HTTP stack logs every request at INFO
    noisy_loggers = ["httpx", "httpcore", "openai"]
    for logger_name in noisy_loggers:
        logging.getLogger(logger_name).setLevel(logging.WARNING)

    logging.getLogger(__name__).debug(f"Logging initialized. verbose={verbose}")
