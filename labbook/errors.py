"""
Errors raised while executing a cell.
"""


class LabbookError(Exception):
    """Base class for cell execution errors."""


class UnknownNamespace(LabbookError):
    """Raised when a call names a namespace missing from the registry."""

    def __init__(self, namespace: str):
        self.namespace = namespace
        super().__init__(f"Unknown namespace: {namespace}")


class UnknownFunction(LabbookError):
    """Raised when a namespace has no function of the called name."""

    def __init__(self, namespace: str, function: str):
        self.namespace = namespace
        self.function = function
        super().__init__(f"Unknown function: {namespace}.{function}")


class FunctionThrow(LabbookError):
    """Raised when a library function fails. The message is passed through as is."""

    def __init__(self, message: str, cause: Exception | None = None):
        self.message = message
        self.cause = cause
        super().__init__(message)


class ExecutionTimeout(LabbookError):
    """A cell ran past its deadline and its execution unit was replaced."""

    def __init__(self, seconds: float):
        self.seconds = seconds
        super().__init__(f"Execution timed out ({seconds:g} seconds)")
