"""Prompt template loading and placeholder substitution."""

from agentloop.prompts.template import (
    FileTemplateStore,
    InMemoryTemplateStore,
    PromptTemplate,
    TemplateStore,
    find_placeholders,
    substitute,
)

__all__ = [
    "FileTemplateStore",
    "InMemoryTemplateStore",
    "PromptTemplate",
    "TemplateStore",
    "find_placeholders",
    "substitute",
]
