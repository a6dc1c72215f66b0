"""Runtime settings for synaptica."""

import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml  # type: ignore

ENV_PREFIX = "SYNAPTICA_"


@dataclass
class Settings:
    """Tunable values for the import and full-text pipelines."""

    user_agent: str = "Synaptica/1.0 (+https://github.com/synaptica; contact@synaptica.dev)"
    eutils_base_url: str = "https://eutils.ncbi.nlm.nih.gov/entrez/eutils"
    pmc_oai_url: str = "https://www.ncbi.nlm.nih.gov/pmc/oai/oai.cgi"
    pmc_article_url: str = "https://www.ncbi.nlm.nih.gov/pmc/articles"

    # Network timeouts, in seconds
    availability_timeout: float = 10.0
    fulltext_timeout: float = 15.0
    pubmed_timeout: float = 15.0

    # Link lookup retry policy
    retry_attempts: int = 3
    retry_base_delay: float = 1.0
    retry_max_delay: float = 5.0

    # Delay between availability checks across a project
    availability_delay: float = 0.5

    max_authors: int = 10
    error_summary_limit: int = 5
    min_full_text_length: int = 100

    openai_model: str = "gpt-4o"
    openai_max_tokens: int = 4000

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {f.name: getattr(self, f.name) for f in fields(self)}


def _coerce(value: str, template: Any) -> Any:
    """Convert an environment string to the type of the default value."""
    if isinstance(template, bool):
        return value.strip().lower() in ("1", "true", "yes", "on")
    if isinstance(template, int):
        return int(value)
    if isinstance(template, float):
        return float(value)
    return value


def load_settings(config_file: Optional[Union[str, Path]] = None) -> Settings:
    """
    Build settings from defaults, an optional YAML file and the environment.

    Environment variables win over the file. Each field can be overridden
    with ``SYNAPTICA_<FIELD_NAME>`` (upper case), e.g.
    ``SYNAPTICA_RETRY_ATTEMPTS=5``.

    Args:
        config_file: Optional path to a YAML mapping of field names to values

    Returns:
        Populated Settings instance
    """
    settings = Settings()
    known = {f.name for f in fields(settings)}

    if config_file:
        path = Path(config_file)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

        if not isinstance(data, dict):
            raise ValueError(f"Config file must contain a mapping: {path}")

        for key, value in data.items():
            if key not in known:
                raise ValueError(f"Unknown setting '{key}' in {path}")
            setattr(settings, key, value)

    for name in known:
        env_value = os.environ.get(f"{ENV_PREFIX}{name.upper()}")
        if env_value is not None:
            setattr(settings, name, _coerce(env_value, getattr(settings, name)))

    return settings
