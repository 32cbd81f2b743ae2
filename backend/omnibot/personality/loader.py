"""Assistant persona: every fixed text the chat backend speaks with.

The wording lives in ``default.yaml`` next to this module; missing keys fall
back to the defaults declared on the models below.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field

from omnibot.models.messages import Citation

_DEFAULT_PATH = Path(__file__).parent / "default.yaml"


class WelcomeText(BaseModel):
    content: str = "Welcome! How can I help?"
    citation: Optional[Citation] = None


class CalculatorText(BaseModel):
    failure: str = "Sorry, I couldn't calculate that: {details}"
    failure_no_details: str = "Sorry, I couldn't calculate that expression."


class RetrieverText(BaseModel):
    failure: str = "Document search is unavailable right now."
    no_results: str = "No matching documents were found."


class Personality(BaseModel):
    name: str = "Assistant"
    product_name: str = "OmniBot"
    system_prompt: str = "You are a helpful AI assistant."
    welcome: WelcomeText = Field(default_factory=WelcomeText)
    fallback_reply: str = "Sorry, something went wrong. Please try again."
    calculator: CalculatorText = Field(default_factory=CalculatorText)
    retriever: RetrieverText = Field(default_factory=RetrieverText)


def load_personality(path: Optional[Path] = None) -> Personality:
    """Load and validate a personality YAML file.

    Raises:
        FileNotFoundError: If the personality file does not exist.
        yaml.YAMLError: If the file contains invalid YAML.
        pydantic.ValidationError: If a key has the wrong shape.
    """
    config_path = path or _DEFAULT_PATH

    if not config_path.exists():
        raise FileNotFoundError(f"Personality file not found: {config_path}")

    with open(config_path, encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}

    personality = Personality.model_validate(raw)
    personality.system_prompt = personality.system_prompt.strip()
    return personality


@lru_cache(maxsize=1)
def default_personality() -> Personality:
    """The bundled personality, parsed once per process."""
    return load_personality()
