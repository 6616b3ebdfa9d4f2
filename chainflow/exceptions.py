"""Exception hierarchy for chain composition and execution

ChainError
├── ContractError            input/output shape mismatch between units
│   └── MissingVariableError a prompt placeholder has no value
├── ExecutionError           a unit's own work failed (wraps the cause)
├── OutputParserError
│   ├── ParseError           malformed model output
│   └── SchemaMismatchError  well-formed output violating the declared schema
├── RoutingExhaustedError    no branch matched and there is no default
└── CancellationError        execution aborted by the caller's signal
"""

from typing import Any, Iterable, List, Optional


class ChainError(Exception):
    def __init__(self, message: str) -> None:
        super().__init__(message)


class ContractError(ChainError):
    pass


class MissingVariableError(ContractError):
    """Raised when a prompt template is formatted without all of its variables"""

    def __init__(self, missing: Iterable[str]) -> None:
        self.missing: List[str] = sorted(missing)
        super().__init__(
            f"Missing value for prompt variable(s): {', '.join(self.missing)}"
        )


class ExecutionError(ChainError):
    """Raised when the internal work of a unit fails

    Attributes:
        unit: Name of the unit whose work failed
        cause: The original exception
    """

    def __init__(self, unit: str, cause: BaseException) -> None:
        self.unit = unit
        self.cause = cause
        super().__init__(f"Unit '{unit}' failed: {type(cause).__name__}: {cause}")


class OutputParserError(ChainError):
    def __init__(self, message: str, text: Optional[str] = None) -> None:
        self.text = text
        super().__init__(message)


class ParseError(OutputParserError):
    pass


class SchemaMismatchError(OutputParserError):
    def __init__(
        self,
        message: str,
        text: Optional[str] = None,
        errors: Optional[List[Any]] = None,
    ) -> None:
        self.errors = errors or []
        super().__init__(message, text=text)


class RoutingExhaustedError(ChainError):
    pass


class CancellationError(ChainError):
    """Raised when the caller's cancellation signal aborts execution

    Attributes:
        partial: Results that had already completed, only populated when the
            caller asked for partial results
    """

    def __init__(self, message: str = "Execution cancelled", partial: Any = None) -> None:
        self.partial = partial
        super().__init__(message)
