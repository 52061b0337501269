"""Custom exception hierarchy for nnetgraph."""

from __future__ import annotations


class NnetGraphError(Exception):
    """Base class for all nnetgraph-specific exceptions."""


class ConfigError(NnetGraphError):
    """
    Raised when a textual network description cannot be interpreted.

    Attributes:
        token (str | None): Offending token or line, if known.

    """

    def __init__(self, message: str | None = None, token: str | None = None):
        """
        Initialize configuration error.

        Args:
            message (str | None, optional): Custom message override.
            token (str | None, optional): Offending token or line.

        """
        if message is None:
            message = (
                "Invalid network description."
                if token is None
                else f"Invalid network description near `{token}`."
            )
        super().__init__(message)
        self.token = token


class CycleError(NnetGraphError):
    """
    Raised when no topological order exists for a graph description.

    Attributes:
        assigned (int): Number of nodes that received an id.
        total (int): Number of nodes in the description.
        unresolved (list[str]): Names of the nodes left without an id.

    """

    def __init__(
        self,
        assigned: int,
        total: int,
        unresolved: list[str] | None = None,
        message: str | None = None,
    ):
        """
        Initialize cycle error with assignment counts.

        Args:
            assigned (int): Number of nodes that received an id.
            total (int): Number of nodes in the description.
            unresolved (list[str] | None, optional): Names left unassigned.
            message (str | None, optional): Custom message override.

        """
        self.assigned = assigned
        self.total = total
        self.unresolved = list(unresolved or [])
        if message is None:
            message = (
                f"The graph has a cycle: assigned {assigned} of {total} ids. "
                f"Unresolved nodes: {self.unresolved}"
            )
        super().__init__(message)


class StructuralInvariantError(NnetGraphError):
    """
    Raised when the component graph violates a structural invariant.

    Attributes:
        node_id (int | None): Id of the offending node, if any.
        producer_id (int | None): Id of the offending producer, if any.

    """

    def __init__(
        self,
        message: str | None = None,
        node_id: int | None = None,
        producer_id: int | None = None,
    ):
        """Initialize structural error with optional node context."""
        if message is None:
            message = "Component graph is structurally invalid."
            if node_id is not None:
                message = f"Component graph is structurally invalid at node {node_id}."
        super().__init__(message)
        self.node_id = node_id
        self.producer_id = producer_id


class DimensionMismatchError(NnetGraphError):
    """
    Raised when runtime data does not match the expected dimensions.

    Attributes:
        expected (object): Expected size or shape.
        received (object): Size or shape actually provided.

    """

    def __init__(
        self,
        expected: object = None,
        received: object = None,
        message: str | None = None,
    ):
        """
        Initialize mismatch error.

        Args:
            expected (object, optional): Expected size or shape.
            received (object, optional): Size or shape provided.
            message (str | None, optional): Custom message override.

        """
        if message is None:
            message = f"Expected dimension {expected}, but got {received}."
        super().__init__(message)
        self.expected = expected
        self.received = received


class NumericInstabilityError(NnetGraphError):
    """Raised when the aggregate parameter vector contains NaN or Inf."""

    def __init__(self, message: str | None = None):
        """Initialize numeric error with optional message."""
        if message is None:
            message = "Parameters contain non-finite values (NaN or Inf)."
        super().__init__(message)
