"""
Parsing of batch annotation responses.

Cleans common LLM output artifacts before decoding:
- <think>...</think> / <thinking>...</thinking> wrappers (chain-of-thought)
- Markdown code fences around the JSON body
- Prose before or after the JSON object
"""

import json
import logging
import re
from typing import Any, Dict, List

from adaptran.core.exceptions import ParseFailure
from adaptran.core.models import TranslationResult
from adaptran.translation.merge import dedupe_result

logger = logging.getLogger(__name__)

_REASONING = re.compile(r"<(think|thinking)>.*?</\1>", re.DOTALL | re.IGNORECASE)
_FENCE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)


def clean_json_output(content: str) -> str:
    """
    Extract the JSON body from a raw model response.

    Args:
        content: Raw LLM output

    Returns:
        Text that should decode as a JSON object
    """
    if not content:
        return ""

    text = _REASONING.sub("", content)

    match = _FENCE.search(text)
    if match:
        text = match.group(1)

    text = text.strip()

    # Drop leading/trailing prose around the outermost object
    if not text.startswith("{"):
        start, end = text.find("{"), text.rfind("}")
        if start != -1 and end > start:
            text = text[start:end + 1]

    return text


def has_reasoning_wrapper(text: str) -> bool:
    """Check if text contains chain-of-thought tags."""
    return bool(text) and _REASONING.search(text) is not None


def parse_paragraph(data: Dict[str, Any]) -> TranslationResult:
    """Decode one paragraph object, de-duplicating annotations by original text."""
    result = TranslationResult.from_dict({
        "words": data.get("words") if isinstance(data.get("words"), list) else [],
        "sentences": data.get("sentences") if isinstance(data.get("sentences"), list) else [],
        "grammarPoints": data.get("grammarPoints") if isinstance(data.get("grammarPoints"), list) else [],
        "fullText": data.get("fullText"),
    })
    return dedupe_result(result)


def parse_batch_response(content: str, expected_count: int) -> List[TranslationResult]:
    """
    Map a batch response back onto the paragraphs that were sent.

    Paragraph ids are the ``[PARA_n]`` positions as strings. Missing ids yield
    empty results; ids outside ``0..expected_count-1`` are ignored.

    Args:
        content: Raw model response
        expected_count: Number of paragraphs in the batch

    Returns:
        One result per paragraph, in batch order

    Raises:
        ParseFailure: Response is not JSON or has no ``paragraphs`` array
    """
    body = clean_json_output(content)
    try:
        parsed = json.loads(body)
    except (json.JSONDecodeError, TypeError) as e:
        raise ParseFailure(f"Response is not valid JSON: {e}", raw_content=content)

    paragraphs = parsed.get("paragraphs") if isinstance(parsed, dict) else None
    if not isinstance(paragraphs, list):
        keys = list(parsed.keys()) if isinstance(parsed, dict) else type(parsed).__name__
        raise ParseFailure(f"Response has no 'paragraphs' array (got {keys})", raw_content=content)

    by_id: Dict[str, Dict[str, Any]] = {}
    for para in paragraphs:
        if isinstance(para, dict) and "id" in para:
            by_id[str(para["id"]).strip()] = para

    expected_ids = [str(i) for i in range(expected_count)]
    missing = [i for i in expected_ids if i not in by_id]
    extra = [i for i in by_id if i not in expected_ids]

    if missing:
        logger.warning(
            f"Response is missing {len(missing)} of {expected_count} paragraphs: [{', '.join(missing)}]"
        )
    if extra:
        logger.warning(f"Ignoring unexpected paragraph ids in response: [{', '.join(extra)}]")

    results = []
    for para_id in expected_ids:
        para = by_id.get(para_id)
        results.append(parse_paragraph(para) if para is not None else TranslationResult())

    logger.debug(
        f"Parsed batch response: {expected_count - len(missing)} paragraphs, "
        f"{sum(1 for r in results if r.is_empty)} empty"
    )
    return results
