import os
import re
from typing import Any, Dict, Optional

from core.exceptions import ConfigError
from core.paths import CONFIG_DIR

# Prompt template directory
PROMPTS_DIR = CONFIG_DIR / "prompts"

_PLACEHOLDER = re.compile(r"\{(\w+)\}")


def load_prompt(name: str, variables: Optional[Dict[str, Any]] = None) -> str:
    """
    Load a prompt template, with sub-directories and variable injection.

    Args:
        name: prompt name, sub-directories allowed (e.g. "content/x")
        variables: values replacing {var} placeholders

    Returns:
        The rendered prompt.

    Example:
        load_prompt("content/x", {"code": "...", "learning_notes": "..."})
    """
    prompt_path = PROMPTS_DIR / f"{name.replace('/', os.sep)}.md"

    if not prompt_path.exists():
        raise ConfigError(f"Prompt '{name}' not found", config_path=str(prompt_path))

    template = prompt_path.read_text(encoding="utf-8")

    if variables:
        # single pass, so substituted values are never re-expanded
        def render(match: "re.Match[str]") -> str:
            key = match.group(1)
            return str(variables[key]) if key in variables else match.group(0)

        template = _PLACEHOLDER.sub(render, template)

    return template.strip()


def strip_wrapping_quotes(text: str) -> str:
    """Models sometimes wrap the whole post in quotes despite being told not to."""
    stripped = (text or "").strip()
    if len(stripped) >= 2 and stripped[0] == stripped[-1] and stripped[0] in {'"', "'"}:
        return stripped[1:-1].strip()
    return stripped
