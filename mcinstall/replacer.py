import logging
from typing import Any, Dict, Mapping

log = logging.getLogger(__name__)


def replace_text(value: Any, replacements: Mapping[str, str]) -> Any:
    """
    Replaces all occurrences of specified substrings within a string.
    Does not use regular expressions.

    Args:
        value: The original value. Strings are patched, lists and dicts are
               patched recursively, anything else is returned untouched.
        replacements: A mapping where keys are the substrings to find and
                      values are the strings to replace them with.

    Returns:
        The value with all specified replacements made.
    """
    if isinstance(value, list):
        return [replace_text(item, replacements) for item in value]
    if isinstance(value, dict):
        return {key: replace_text(item, replacements) for key, item in value.items()}
    if not isinstance(value, str):
        return value

    modified_value = value
    for search_string, replace_string in replacements.items():
        if isinstance(search_string, str) and isinstance(replace_string, str):
            modified_value = modified_value.replace(search_string, replace_string)
        else:
            log.warning(f"replace_text: Skipping replacement for key '{search_string}' as either key or value is not a string.")

    return modified_value


def patch_config(raw: Dict[str, Any], this_dir: str) -> Dict[str, Any]:
    """Applies the ':thisdir:' placeholder to every value of a config mapping."""
    return {key: replace_text(value, {':thisdir:': this_dir}) for key, value in raw.items()}
