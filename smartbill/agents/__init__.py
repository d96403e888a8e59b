"""
Agents Package

The assistant's prompt text and the builder that turns the ledger and the
conversation into a model request.
"""

from smartbill.agents.prompt_builder import PromptBuilder, PromptBuildError

__all__ = [
    "PromptBuilder",
    "PromptBuildError",
]
