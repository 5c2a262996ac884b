"""
Prompt templates for learner-adapted annotation.

Paragraphs in a batch are tagged ``[PARA_n]`` where ``n`` is the position in
the batch; the model must echo ``n`` as the paragraph ``id`` so results can
be matched back by position.
"""

from typing import Sequence

from adaptran.core.models import ExamType

BATCH_PROMPT_TEMPLATE = """You are an English learning assistant. The learner knows about {vocabulary_size} English words (roughly {exam_level} level).

Analyse the English paragraphs below (separated by [PARA_n] markers). For each paragraph, find what is likely above the learner's level:
1. Words outside the {exam_level} vocabulary
2. Phrases and idioms
3. Complex grammar (inversion, subjunctive, nested clauses, ...)

For every item give a {target_language} translation and a difficulty from 1 to 10.
Also give a complete {target_language} translation of every paragraph.

Paragraphs:
{paragraphs}

Respond with JSON in exactly this shape:
{
  "paragraphs": [
    {
      "id": "n from [PARA_n]",
      "fullText": "complete translation of the paragraph",
      "words": [
        {
          "original": "word as written",
          "translation": "translation",
          "position": [start, end],
          "difficulty": 1-10,
          "isPhrase": false
        }
      ],
      "sentences": [
        {
          "original": "complex sentence",
          "translation": "translation",
          "grammarNote": "optional grammar note"
        }
      ],
      "grammarPoints": [
        {
          "original": "grammar fragment, e.g. had I known",
          "explanation": "what the structure means",
          "type": "grammar type, e.g. subjunctive",
          "position": [start, end]
        }
      ]
    }
  ]
}

Only include grammarPoints when a paragraph has a structure worth learning. Plain simple sentences need none."""

QUICK_PROMPT_TEMPLATE = (
    "Translate the following English word or phrase to {target_language}. "
    "Only respond with the translation, nothing else.\n\n{text}"
)


def _fill(template: str, **values) -> str:
    # The batch template contains literal JSON braces, so str.format is not usable
    for key, value in values.items():
        template = template.replace("{" + key + "}", str(value))
    return template


def format_paragraphs(paragraphs: Sequence[str]) -> str:
    """Join paragraph texts with ``[PARA_n]`` tags."""
    return "\n\n".join(f"[PARA_{i}]\n{text}" for i, text in enumerate(paragraphs))


def render_batch_prompt(
    vocabulary_size: int,
    exam_type: ExamType,
    paragraphs: Sequence[str],
    target_language: str = "Chinese"
) -> str:
    """
    Build the batch annotation prompt.

    Args:
        vocabulary_size: Learner's estimated vocabulary
        exam_type: Exam the level is expressed in
        paragraphs: Paragraph texts in batch order
        target_language: Language of the translations

    Returns:
        Prompt string
    """
    return _fill(
        BATCH_PROMPT_TEMPLATE,
        vocabulary_size=vocabulary_size,
        exam_level=exam_type.display_name,
        target_language=target_language,
        paragraphs=format_paragraphs(paragraphs),
    )


def render_quick_prompt(text: str, target_language: str = "Chinese") -> str:
    """Prompt for a single word or phrase lookup."""
    return _fill(QUICK_PROMPT_TEMPLATE, target_language=target_language, text=text.strip())
