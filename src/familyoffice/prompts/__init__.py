"""Prompt templates and substitution."""

from familyoffice.prompts.loader import PromptLoader, PromptTemplate, extract_variables, fill_template

__all__ = ["PromptLoader", "PromptTemplate", "extract_variables", "fill_template"]
