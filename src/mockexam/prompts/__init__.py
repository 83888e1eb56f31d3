"""Instruction builders for the completion service."""

from mockexam.prompts.builder import (
    DomainHint,
    Language,
    infer_domain_hint,
)

__all__ = [
    "DomainHint",
    "Language",
    "infer_domain_hint",
]
