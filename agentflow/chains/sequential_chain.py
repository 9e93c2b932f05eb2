import logging
from typing import Any, Dict, List, Optional

from ..errors import ChainError
from .prompt import format_prompt

logger = logging.getLogger(__name__)


def execute_sequential_chain(
    runtime,
    steps: List[Dict[str, Any]],
    initial_input: Optional[Dict[str, Any]] = None,
    temperature: Optional[float] = None,
    model: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Run prompt steps in order, each step's output feeding the next.

    A step is `{name, prompt, inputVariables?, outputKey?, temperature?,
    modelName?}`. Its output is stored under `outputKey` (or `name`) and
    becomes a variable for every later step. Without `inputVariables` a
    step sees all variables produced so far.
    """
    if not steps:
        raise ChainError("Sequential Chain failed: no steps configured")

    variables = dict(initial_input or {})
    outputs: Dict[str, str] = {}
    step_results = []

    try:
        for i, step in enumerate(steps, start=1):
            name = step.get("name") or f"step_{i}"
            output_key = step.get("outputKey") or name
            logger.info(f"Sequential chain step {i}/{len(steps)}: {name}")

            wanted = step.get("inputVariables")
            if wanted:
                step_input = {}
                for var in wanted:
                    if var in variables:
                        step_input[var] = variables[var]
                    else:
                        logger.warning(f"Variable '{var}' not found for step {name}")
            else:
                step_input = dict(variables)

            step_temperature = step.get("temperature")
            if step_temperature is None:
                step_temperature = 0.7 if temperature is None else temperature
            chat_model = runtime.chat_model(temperature=step_temperature, model=step.get("modelName") or model)
            output = chat_model.invoke(format_prompt(step.get("prompt", ""), step_input))

            outputs[output_key] = output
            variables[output_key] = output
            step_results.append({"name": name, "input": step_input, "output": output})
            logger.debug(f"Step {name} output: {output[:100]}")
    except Exception as e:
        logger.error(f"Sequential chain execution failed: {e}")
        raise ChainError(f"Sequential Chain failed: {e}")

    return {"outputs": outputs, "finalOutput": step_results[-1]["output"], "steps": step_results}
