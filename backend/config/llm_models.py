"""
Configuration for LLM models and the tasks that use them
"""

from typing import Dict
from pydantic import BaseModel


class ModelCapabilities(BaseModel):
    """Capabilities and parameters supported by a model"""
    supports_temperature: bool = True  # Reasoning models reject temperature
    uses_max_completion_tokens: bool = False  # Newer OpenAI models use max_completion_tokens instead of max_tokens


# Model configurations with their capabilities
MODEL_CONFIGS: Dict[str, ModelCapabilities] = {
    "gpt-4.1": ModelCapabilities(
        uses_max_completion_tokens=True,
    ),
    "gpt-4.1-mini": ModelCapabilities(
        uses_max_completion_tokens=True,
    ),
    "gpt-5-mini": ModelCapabilities(
        supports_temperature=False,
        uses_max_completion_tokens=True,
    ),
    "google/gemini-3-flash-preview": ModelCapabilities(),
    "claude-sonnet-4-20250514": ModelCapabilities(),
}


# Task-specific settings
TASK_CONFIGS = {
    "report_analysis": {
        "temperature": 0.3,
        "max_tokens": 8192,
        "content_limit": 50000,
        "description": "Turn raw regulatory report text into categorized insights",
    },
    "data_chat": {
        "temperature": None,
        "max_tokens": 4096,
        "context_excerpt_limit": 10000,
        "description": "Answer questions over selected ingested reports",
    },
}


def get_model_capabilities(model_name: str) -> ModelCapabilities:
    """
    Get the capabilities for a specific model.

    Unknown models (e.g. a gateway alias) get the default capabilities.
    """
    return MODEL_CONFIGS.get(model_name, ModelCapabilities())


def supports_temperature(model_name: str) -> bool:
    """Check if a model supports the temperature parameter."""
    return get_model_capabilities(model_name).supports_temperature


def uses_max_completion_tokens(model_name: str) -> bool:
    """Check if a model uses max_completion_tokens instead of max_tokens."""
    return get_model_capabilities(model_name).uses_max_completion_tokens


def get_task_config(task: str) -> dict:
    """Get the model settings for a task ('report_analysis' or 'data_chat')."""
    if task not in TASK_CONFIGS:
        raise ValueError(f"Unknown LLM task: {task}. Available tasks: {list(TASK_CONFIGS.keys())}")
    return TASK_CONFIGS[task]
