"""
Prompts package for Cartera.
Contains system prompt templates for the investment assistant.
"""

import os
from typing import Dict

# Cache for loaded prompts
_prompt_cache: Dict[str, str] = {}


def load_prompt(filename: str) -> str:
    """
    Load a prompt from a text file.

    Args:
        filename: Name of the prompt file (e.g., 'system_prompt_es.txt')

    Returns:
        Prompt content as string
    """
    if filename in _prompt_cache:
        return _prompt_cache[filename]

    # Get the directory where this file is located
    prompt_dir = os.path.dirname(os.path.abspath(__file__))
    filepath = os.path.join(prompt_dir, filename)

    try:
        with open(filepath, 'r', encoding='utf-8') as f:
            content = f.read()
            _prompt_cache[filename] = content
            return content
    except FileNotFoundError:
        raise FileNotFoundError(f"Prompt file not found: {filepath}")


def get_system_prompt_template(language: str = "es") -> str:
    """
    Get the system prompt template for the specified language.
    Placeholders: {holdings}, {dollar_rates}, {transaction_count}.
    """
    return load_prompt(f"system_prompt_{language}.txt")
