"""Mock exam generation and grading pipeline.

Turns pasted study material into a structured mock exam via an
OpenAI-compatible completion service, and grades a student's answers
against it (deterministic for multiple choice, LLM-assisted for
short and essay answers).
"""

__version__ = "0.1.0"
