"""Boundary validation and transcript wrapping for meta-prompts."""
from .prompt_guard import detect_injection_attempt, sanitize_for_prompt, wrap_user_content
from .validators import (
    ValidationError,
    validate_identifier,
    validate_in_choices,
    validate_length,
    validate_list_size,
    validate_not_empty,
    validate_url,
)
