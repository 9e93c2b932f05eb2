"""
Parsers for structured model output.

Models are asked for JSON but often wrap it in prose or code fences. These
helpers pull out the JSON span, and can optionally ask the model to repair
output that still fails to parse.
"""
import json
import logging
import re
from typing import Any, Dict, Optional, Type

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from .errors import OutputParserError

logger = logging.getLogger(__name__)

JSON_SPAN = re.compile(r"\{[\s\S]*\}")
CODE_FENCE = re.compile(r"```(?:json)?\s*([\s\S]*?)```", re.IGNORECASE)

FORMAT_INSTRUCTIONS = "Your response must be valid JSON. Return only the JSON object, no additional text."

FIX_PROMPT = """Instructions:
--------------
{instructions}
--------------
Completion:
--------------
{completion}
--------------

Above, the Completion did not satisfy the constraints given in the Instructions.
Error:
--------------
{error}
--------------

Please try again. Please only respond with an answer that satisfies the constraints laid out in the Instructions:"""


def extract_json(text: str) -> Optional[str]:
    """The `{...}` span of `text`, looking inside a code fence first."""
    if not text:
        return None
    fenced = CODE_FENCE.search(text)
    if fenced:
        text = fenced.group(1)
    match = JSON_SPAN.search(text)
    return match.group(0) if match else None


def _load(text: str) -> Dict[str, Any]:
    candidate = extract_json(text) or text
    try:
        value = json.loads(candidate)
    except (json.JSONDecodeError, TypeError) as e:
        raise OutputParserError(f"Failed to parse JSON: {e}")
    if not isinstance(value, dict):
        raise OutputParserError("Failed to parse JSON: expected an object")
    return value


def _with_fixing(text, parse, instructions, chat_model, max_retries):
    try:
        return parse(text)
    except OutputParserError as e:
        if chat_model is None:
            raise
        last_error = e

    completion = text
    for attempt in range(max_retries):
        logger.warning(f"Parse attempt {attempt + 1} failed, asking the model to fix it: {last_error.message}")
        completion = chat_model.invoke(
            FIX_PROMPT.format(instructions=instructions, completion=completion, error=last_error.message)
        )
        try:
            return parse(completion)
        except OutputParserError as e:
            last_error = e
    raise OutputParserError(f"Failed to parse output after {max_retries} retries: {last_error.message}")


def parse_json(text: str, auto_fix: bool = False, chat_model=None, max_retries: int = 3) -> Dict[str, Any]:
    return _with_fixing(text, _load, FORMAT_INSTRUCTIONS, chat_model if auto_fix else None, max_retries)


def parse_structured(
    text: str,
    schema: Type[BaseModel],
    auto_fix: bool = False,
    chat_model=None,
    max_retries: int = 3,
) -> BaseModel:
    """Parse `text` as JSON and validate it against a pydantic model."""

    def parse(raw):
        try:
            return schema.model_validate(_load(raw))
        except PydanticValidationError as e:
            raise OutputParserError(f"Output does not match schema: {e}")

    instructions = (
        f"{FORMAT_INSTRUCTIONS}\nThe JSON object must match this JSON schema:\n"
        f"{json.dumps(schema.model_json_schema(), indent=2)}"
    )
    return _with_fixing(text, parse, instructions, chat_model if auto_fix else None, max_retries)
