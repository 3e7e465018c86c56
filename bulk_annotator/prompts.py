"""
Prompt templates for Gemini annotation.
"""

ANNOTATION_PROMPT = (
    "Write a twenty word opinion on how well the first concept matches "
    "the argument, written in spanish:"
)


def build_annotation_prompt(preprompt: str, concept: str, argument: str) -> str:
    """Build the full annotation prompt."""
    parts = [
        preprompt,
        f"Concept: {concept}",
        f"Argument: {argument}",
    ]
    return '\n'.join(parts)
