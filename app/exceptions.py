"""Domain exceptions raised by services and translated to HTTP errors by the routers."""


class QueryNotFoundError(LookupError):
    """The research query identifier does not resolve to a row."""

    def __init__(self, query_id: str):
        self.query_id = query_id
        super().__init__(f"Query not found: {query_id}")


class ProviderNotConfiguredError(RuntimeError):
    """An external provider was called without its API key."""


class AgentError(RuntimeError):
    """A producer agent could not persist any of its records."""

    def __init__(self, agent: str, message: str):
        self.agent = agent
        super().__init__(f"{agent} agent failed: {message}")


class OrchestrationError(RuntimeError):
    """The orchestrator failed before reaching a completed status."""

    def __init__(self, query_id: str, message: str):
        self.query_id = query_id
        super().__init__(message)
