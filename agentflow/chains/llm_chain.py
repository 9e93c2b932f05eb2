import logging
from typing import Any, Dict, Optional

from ..errors import ChainError
from .prompt import format_prompt

logger = logging.getLogger(__name__)


def execute_llm_chain(
    runtime,
    prompt: str,
    variables: Optional[Dict[str, Any]] = None,
    temperature: float = 0.7,
    model: Optional[str] = None,
    max_tokens: Optional[int] = None,
) -> Dict[str, Any]:
    """Format `prompt` with `variables` and run a single model call."""
    variables = variables or {}
    try:
        formatted = format_prompt(prompt, variables)
        logger.info(f"LLM chain prompt: {formatted[:200]}")
        chat_model = runtime.chat_model(
            temperature=0.7 if temperature is None else temperature,
            model=model,
            max_tokens=max_tokens,
        )
        output = chat_model.invoke(formatted)
    except Exception as e:
        logger.error(f"LLM chain execution failed: {e}")
        raise ChainError(f"LLM Chain failed: {e}")

    logger.info(f"LLM chain output: {output[:100]}")
    return {"output": output, "prompt": formatted, "variables": variables}
