"""Prompt rendering for the AI generator.

Provides ``PromptManager``, a Jinja2-based template engine that renders a
completed conversation into the prompt for its flow.
"""

from relocation_flows.prompt.manager import PromptManager

__all__ = ["PromptManager"]
