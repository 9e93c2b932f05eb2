import logging
from typing import Any, Dict, List, Optional

from ..errors import ChainError
from .llm_chain import execute_llm_chain
from .prompt import format_prompt
from .sequential_chain import execute_sequential_chain

logger = logging.getLogger(__name__)

ROUTING_TEMPLATE = """{routing_prompt}

Available destinations:
{destinations}

Respond with ONLY the destination name (e.g., "email" or "code"). Do not include any explanation."""


def select_destination(decision: str, destinations: List[Dict[str, Any]], default: Optional[str] = None):
    """Exact name match, then partial match, then the default, then the first destination."""
    for dest in destinations:
        if dest["name"].lower() == decision:
            return dest
    for dest in destinations:
        name = dest["name"].lower()
        if name in decision or decision in name:
            return dest
    if default:
        for dest in destinations:
            if dest["name"] == default:
                return dest
    logger.warning(f"No destination matched '{decision}', using first: {destinations[0]['name']}")
    return destinations[0]


def _run_destination(runtime, destination, input_vars):
    chain_type = destination.get("chainType", "llm")
    chain_config = destination.get("chainConfig") or {}
    if chain_type == "llm":
        return execute_llm_chain(
            runtime,
            chain_config.get("prompt", ""),
            {**(chain_config.get("variables") or {}), **input_vars},
            temperature=chain_config.get("temperature"),
            model=chain_config.get("modelName"),
            max_tokens=chain_config.get("maxTokens"),
        )
    if chain_type == "sequential":
        return execute_sequential_chain(
            runtime,
            chain_config.get("steps") or [],
            {**(chain_config.get("initialInput") or {}), **input_vars},
            temperature=chain_config.get("temperature"),
            model=chain_config.get("modelName"),
        )
    raise ChainError(f"Unsupported chain type: {chain_type}")


def execute_router_chain(
    runtime,
    routing_prompt: str,
    destinations: List[Dict[str, Any]],
    input: Optional[Dict[str, Any]] = None,
    default_destination: Optional[str] = None,
    temperature: float = 0.3,
    model: Optional[str] = None,
) -> Dict[str, Any]:
    input_vars = input or {}
    if not destinations:
        raise ChainError("Router Chain failed: No destinations available")

    try:
        listing = "\n".join(f"{i}. {d['name']}: {d.get('description', '')}" for i, d in enumerate(destinations, start=1))
        prompt = ROUTING_TEMPLATE.format(routing_prompt=routing_prompt, destinations=listing)
        chat_model = runtime.chat_model(temperature=0.3 if temperature is None else temperature, model=model)
        decision = chat_model.invoke(format_prompt(prompt, input_vars)).strip().lower()
        logger.info(f"Routing decision: '{decision}'")

        destination = select_destination(decision, destinations, default_destination)
        logger.info(f"Selected destination: {destination['name']}")
        chain_result = _run_destination(runtime, destination, input_vars)
    except ChainError as e:
        raise ChainError(f"Router Chain failed: {e.message}")
    except Exception as e:
        logger.error(f"Router chain execution failed: {e}")
        raise ChainError(f"Router Chain failed: {e}")

    return {
        "selectedDestination": destination["name"],
        "destinationDescription": destination.get("description", ""),
        "chainResult": chain_result,
        "routingDecision": decision,
    }
