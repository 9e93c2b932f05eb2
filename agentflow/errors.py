class AgentFlowError(Exception):
    """Base error. `status_code` is what the HTTP layer answers with."""
    status_code = 500

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(AgentFlowError):
    status_code = 400


class NotFoundError(AgentFlowError):
    status_code = 404


class WorkflowError(AgentFlowError):
    pass


class NodeExecutionError(AgentFlowError):
    def __init__(self, message: str, node_id: str = None):
        super().__init__(message)
        self.node_id = node_id


class MaxIterationsError(AgentFlowError):
    def __init__(self, message: str = "Max iterations reached", iterations: int = 0):
        super().__init__(message)
        self.iterations = iterations


class OutputParserError(AgentFlowError):
    pass


class ChainError(AgentFlowError):
    pass


class AgentNotFoundError(AgentFlowError):
    status_code = 400
