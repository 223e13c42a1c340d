"""
Orchestration limits.

Every bound that caps cost or concurrency per request lives here rather than
inline, so deployments can tune them with HUDDLE_* environment variables:

    HUDDLE_MAX_CONSULTED_SPECIALISTS=2 HUDDLE_SPECIALIST_TIMEOUT_SECONDS=30 huddle serve
"""

import logging
import os
from dataclasses import dataclass, fields
from typing import Mapping

logger = logging.getLogger(__name__)

ENV_PREFIX = "HUDDLE_"

MAX_CONSULTED_SPECIALISTS = 4
MAX_TRANSCRIPT_CHARS_FOR_SELECTOR = 12_000
MAX_TRANSCRIPT_ITEMS_FOR_SELECTOR = 12
MAX_TRANSCRIPT_CHARS_FOR_SPECIALISTS = 16_000
MAX_TRANSCRIPT_ITEMS_FOR_SPECIALISTS = 16
MAX_SPECIALIST_OUTPUT_CHARS = 6_000
SELECTOR_TEMPERATURE = 0.2
SPECIALIST_TIMEOUT_SECONDS = 90.0
MAX_EXTRACT_CHARS_PER_FILE = 60_000
MAX_TOTAL_EXTRACT_CHARS = 120_000


@dataclass
class ConsultConfig:
    """Configuration for one orchestrator instance."""

    max_consulted_specialists: int = MAX_CONSULTED_SPECIALISTS
    max_transcript_chars_for_selector: int = MAX_TRANSCRIPT_CHARS_FOR_SELECTOR
    max_transcript_items_for_selector: int = MAX_TRANSCRIPT_ITEMS_FOR_SELECTOR
    max_transcript_chars_for_specialists: int = MAX_TRANSCRIPT_CHARS_FOR_SPECIALISTS
    max_transcript_items_for_specialists: int = MAX_TRANSCRIPT_ITEMS_FOR_SPECIALISTS
    max_specialist_output_chars: int = MAX_SPECIALIST_OUTPUT_CHARS
    selector_temperature: float = SELECTOR_TEMPERATURE
    specialist_timeout_seconds: float = SPECIALIST_TIMEOUT_SECONDS
    max_extract_chars_per_file: int = MAX_EXTRACT_CHARS_PER_FILE
    max_total_extract_chars: int = MAX_TOTAL_EXTRACT_CHARS

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "ConsultConfig":
        """Build a config, overriding defaults with HUDDLE_<FIELD> variables."""
        environ = os.environ if environ is None else environ
        config = cls()
        for f in fields(cls):
            raw = environ.get(f"{ENV_PREFIX}{f.name.upper()}")
            if raw is None or not raw.strip():
                continue
            default = getattr(config, f.name)
            try:
                value = type(default)(raw.strip())
            except ValueError:
                logger.warning(
                    f"[ConsultConfig] Ignoring {ENV_PREFIX}{f.name.upper()}={raw!r} "
                    f"(expected {type(default).__name__})"
                )
                continue
            if value < 0:
                logger.warning(f"[ConsultConfig] Ignoring negative {f.name}={value}")
                continue
            setattr(config, f.name, value)
        return config
