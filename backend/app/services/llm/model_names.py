"""
Human friendly names for provider model ids.

Examples:
    gpt-4o                      -> GPT 4o
    claude-3-5-sonnet-20240620  -> Claude 3.5 Sonnet
    gemini-1.5-pro              -> Gemini 1.5 Pro
"""

import re

_BRAND_NAMES = {"gpt": "GPT", "claude": "Claude", "gemini": "Gemini"}


def _format_part(part: str) -> str:
    brand = _BRAND_NAMES.get(part.lower())
    if brand:
        return brand
    if re.fullmatch(r"[\d.]+", part):
        return part
    if re.fullmatch(r"\d+[a-zA-Z]", part):
        return part.lower()
    return part[:1].upper() + part[1:].lower()


def get_model_display_name(model_name: str) -> str:
    clean_name = re.sub(r"-\d{8}$", "", model_name)
    clean_name = re.sub(r"-exp(-\d+)?$", "", clean_name)
    # "3-5" -> "3.5", first occurrence only
    clean_name = re.sub(r"(\d)-(\d)", r"\1.\2", clean_name, count=1)

    return " ".join(_format_part(part) for part in clean_name.split("-"))


def get_model_provider(model_name: str) -> str:
    if model_name.startswith("gpt-"):
        return "OpenAI"
    if model_name.startswith("claude-"):
        return "Anthropic"
    if model_name.startswith("gemini-"):
        return "Google"
    return "Unknown"


def get_model_display_name_with_provider(model_name: str) -> str:
    display_name = get_model_display_name(model_name)
    provider = get_model_provider(model_name)

    if provider == "Unknown" or display_name == model_name:
        return display_name
    return f"{display_name} ({provider})"
