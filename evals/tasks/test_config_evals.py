"""
Configuration evals -- defaults and HUDDLE_* environment overrides.
"""

from huddle.orchestration import ConsultConfig
from huddle.orchestration.config import MAX_CONSULTED_SPECIALISTS


def test_defaults():
    config = ConsultConfig()
    assert config.max_consulted_specialists == MAX_CONSULTED_SPECIALISTS == 4
    assert config.max_transcript_chars_for_selector == 12_000
    assert config.max_transcript_items_for_selector == 12
    assert config.max_transcript_chars_for_specialists == 16_000
    assert config.max_transcript_items_for_specialists == 16
    assert config.max_specialist_output_chars == 6_000
    assert config.selector_temperature == 0.2


def test_env_overrides():
    config = ConsultConfig.from_env({
        "HUDDLE_MAX_CONSULTED_SPECIALISTS": "2",
        "HUDDLE_SPECIALIST_TIMEOUT_SECONDS": "12.5",
        "UNRELATED": "1",
    })
    assert config.max_consulted_specialists == 2
    assert config.specialist_timeout_seconds == 12.5


def test_invalid_and_negative_values_ignored():
    config = ConsultConfig.from_env({
        "HUDDLE_MAX_CONSULTED_SPECIALISTS": "many",
        "HUDDLE_MAX_SPECIALIST_OUTPUT_CHARS": "-1",
        "HUDDLE_SELECTOR_TEMPERATURE": "  ",
    })
    assert config == ConsultConfig()
