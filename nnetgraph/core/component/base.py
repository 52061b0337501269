"""Base classes shared by every node of a component graph."""

from __future__ import annotations

import copy
from abc import ABC, abstractmethod
from enum import Enum
from typing import TYPE_CHECKING, Any, ClassVar

import numpy as np

from nnetgraph.core.component.registry import lookup_component
from nnetgraph.core.context import ComputeContext
from nnetgraph.core.training.options import TrainOptions
from nnetgraph.utils.errors.exceptions import ConfigError, DimensionMismatchError
from nnetgraph.utils.logging import get_logger
from nnetgraph.utils.representation.summary import Summarizable
from nnetgraph.utils.stats import moment_statistics

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from nnetgraph.core.io.tokens import TokenReader, TokenWriter
    from nnetgraph.utils.representation.summary import SummaryRow

logger = get_logger("component")

EXTERNAL_INPUT = "-1"
END_OF_COMPONENT = "<!EndOfComponent>"

# Common option tokens understood by every component.
_COMMON_OPTIONS = ("<InputDim>", "<OutputDim>", "<Name>", "<Input>", "<Offset>")


class ComponentKind(str, Enum):
    """Role of a component inside the graph."""

    INPUT_TERMINAL = "input_terminal"
    OUTPUT_TERMINAL = "output_terminal"
    UPDATABLE = "updatable"
    PLAIN = "plain"


def _split_list(value: str) -> list[str]:
    return [v for v in value.split(",") if v]


class Component(Summarizable, ABC):
    """
    One node of a component graph.

    A component maps an ``(rows, input_dim)`` matrix to an
    ``(rows, output_dim)`` matrix and knows how to map an output gradient
    back to an input gradient. Wiring is stored as producer ids and column
    offsets into this component's input buffer; the owning graph assigns
    ids and resolves names.

    Attributes:
        id (int): Position in the owning graph (-1 until assigned).
        name (str | None): Optional unique name used by graph descriptions.
        input_names (list[str]): Producer names from a graph description.
        inputs (list[int]): Producer ids (-1 for external input).
        offsets (list[int]): Column offset of each producer in the input buffer.

    """

    marker: ClassVar[str] = ""
    kind: ClassVar[ComponentKind] = ComponentKind.PLAIN

    # Component-specific option tokens mapped to their value parser
    init_options: ClassVar[dict[str, Callable[[str], Any]]] = {}

    # When True, input_dim must equal output_dim and either may be omitted
    same_dims: ClassVar[bool] = False

    def __init__(
        self,
        input_dim: int,
        output_dim: int,
        *,
        name: str | None = None,
        input_names: Sequence[str] | None = None,
        offsets: Sequence[int] | None = None,
    ):
        if input_dim < 1 or output_dim < 1:
            msg = (
                f"{type(self).__name__} dimensions must be positive, "
                f"got input_dim={input_dim}, output_dim={output_dim}."
            )
            raise ConfigError(msg)
        if self.same_dims and input_dim != output_dim:
            msg = (
                f"{type(self).__name__} requires input_dim == output_dim, "
                f"got {input_dim} and {output_dim}."
            )
            raise ConfigError(msg)
        if name is not None and (not name or any(c.isspace() for c in name)):
            msg = f"Component names must be non-empty and contain no whitespace: {name!r}"
            raise ConfigError(msg)

        self._input_dim = int(input_dim)
        self._output_dim = int(output_dim)
        self.id: int = -1
        self.name = name
        self.input_names: list[str] = list(input_names or [])
        self.inputs: list[int] = []
        self.offsets: list[int] = [int(o) for o in offsets] if offsets is not None else []

    def __repr__(self) -> str:
        label = f" '{self.name}'" if self.name else ""
        return (
            f"{type(self).__name__}{label}(id={self.id}, "
            f"{self._input_dim} -> {self._output_dim}, inputs={self.inputs})"
        )

    # ================================================
    # Properties
    # ================================================
    @property
    def input_dim(self) -> int:
        return self._input_dim

    @property
    def output_dim(self) -> int:
        return self._output_dim

    @property
    def is_updatable(self) -> bool:
        return self.kind is ComponentKind.UPDATABLE

    @property
    def is_input_terminal(self) -> bool:
        return self.kind is ComponentKind.INPUT_TERMINAL

    @property
    def is_output_terminal(self) -> bool:
        return self.kind is ComponentKind.OUTPUT_TERMINAL

    @property
    def edges(self) -> list[tuple[int, int]]:
        """``(offset, producer_id)`` pairs in declaration order."""
        return list(zip(self.offsets, self.inputs))

    def set_mono_input(self, producer_id: int) -> None:
        """Wire this component to a single producer at offset 0."""
        self.inputs = [producer_id]
        self.offsets = [0]

    # ================================================
    # Computation
    # ================================================
    def _check_cols(self, mat: np.ndarray, cols: int, what: str) -> None:
        if mat.ndim != 2 or mat.shape[1] != cols:
            raise DimensionMismatchError(
                expected=("rows", cols),
                received=mat.shape,
                message=(
                    f"{what} of component {self.id} ({self.marker}) must have "
                    f"{cols} columns, got shape {mat.shape}."
                ),
            )

    def propagate(self, inputs: np.ndarray, ctx: ComputeContext) -> np.ndarray:
        """
        Run the training-mode forward transform.

        Args:
            inputs (np.ndarray): Matrix of shape ``(rows, input_dim)``.
            ctx (ComputeContext): Shared numeric context.

        Returns:
            np.ndarray: Matrix of shape ``(rows, output_dim)``.

        Raises:
            DimensionMismatchError: If `inputs` has the wrong number of columns.

        """
        self._check_cols(inputs, self._input_dim, "Input")
        return self._propagate(inputs, ctx)

    def feedforward(self, inputs: np.ndarray, ctx: ComputeContext) -> np.ndarray:
        """Run the inference-mode forward transform (see :meth:`propagate`)."""
        self._check_cols(inputs, self._input_dim, "Input")
        return self._feedforward(inputs, ctx)

    def backpropagate(
        self,
        inputs: np.ndarray,
        outputs: np.ndarray,
        output_grad: np.ndarray,
        ctx: ComputeContext,
    ) -> np.ndarray:
        """
        Map the gradient w.r.t. the output to the gradient w.r.t. the input.

        Args:
            inputs (np.ndarray): Forward input, ``(rows, input_dim)``.
            outputs (np.ndarray): Forward output, ``(rows, output_dim)``.
            output_grad (np.ndarray): Gradient w.r.t. `outputs`.
            ctx (ComputeContext): Shared numeric context.

        Returns:
            np.ndarray: Gradient w.r.t. `inputs`, ``(rows, input_dim)``.

        Raises:
            DimensionMismatchError: If `output_grad` does not match `outputs`.

        """
        self._check_cols(output_grad, self._output_dim, "Output gradient")
        if output_grad.shape[0] != inputs.shape[0]:
            raise DimensionMismatchError(
                expected=inputs.shape[0],
                received=output_grad.shape[0],
                message=(
                    f"Output gradient of component {self.id} has {output_grad.shape[0]} "
                    f"rows but the forward pass had {inputs.shape[0]}."
                ),
            )
        return self._backpropagate(inputs, outputs, output_grad, ctx)

    @abstractmethod
    def _propagate(self, inputs: np.ndarray, ctx: ComputeContext) -> np.ndarray: ...

    @abstractmethod
    def _backpropagate(
        self,
        inputs: np.ndarray,
        outputs: np.ndarray,
        output_grad: np.ndarray,
        ctx: ComputeContext,
    ) -> np.ndarray: ...

    def _feedforward(self, inputs: np.ndarray, ctx: ComputeContext) -> np.ndarray:
        return self._propagate(inputs, ctx)

    def copy(self) -> Component:
        """Return a deep copy of this component (parameters, wiring and state)."""
        return copy.deepcopy(self)

    # ================================================
    # Construction from a description line
    # ================================================
    @staticmethod
    def init(line: str, ctx: ComputeContext | None = None) -> Component:
        """
        Build a component from one description line.

        Example:
            ``<AffineTransform> <InputDim> 4 <OutputDim> 3 <Name> h1 <Input> x``

        Args:
            line (str): Marker followed by ``<Key> value`` pairs.
            ctx (ComputeContext | None): Random source for parameter init.

        Returns:
            Component: The initialized component (id not yet assigned).

        Raises:
            ConfigError: On unknown markers, unknown or malformed options.

        """
        ctx = ctx or ComputeContext()
        tokens = line.split()
        if not tokens:
            msg = "Empty component line."
            raise ConfigError(msg, token=line)
        cls = lookup_component(tokens[0])

        options: dict[str, str] = {}
        rest = tokens[1:]
        if len(rest) % 2 != 0:
            msg = f"Option `{rest[-1]}` has no value in line: {line.strip()}"
            raise ConfigError(msg, token=rest[-1])
        for key, value in zip(rest[0::2], rest[1::2]):
            if not (key.startswith("<") and key.endswith(">")):
                msg = f"Expected an option token like <Key>, got `{key}`."
                raise ConfigError(msg, token=key)
            options[key] = value

        try:
            in_dim = int(options.pop("<InputDim>")) if "<InputDim>" in options else None
            out_dim = int(options.pop("<OutputDim>")) if "<OutputDim>" in options else None
            offsets = (
                [int(o) for o in _split_list(options.pop("<Offset>"))]
                if "<Offset>" in options
                else None
            )
        except ValueError as exc:
            msg = f"Non-integer dimension or offset in line: {line.strip()}"
            raise ConfigError(msg, token=line.strip()) from exc

        if cls.same_dims:
            in_dim = in_dim if in_dim is not None else out_dim
            out_dim = out_dim if out_dim is not None else in_dim
        if in_dim is None or out_dim is None:
            msg = f"{cls.marker} needs both <InputDim> and <OutputDim>."
            raise ConfigError(msg, token=line.strip())

        name = options.pop("<Name>", None)
        input_names = _split_list(options.pop("<Input>", ""))
        comp = cls(in_dim, out_dim, name=name, input_names=input_names, offsets=offsets)
        comp.init_data(options, ctx)
        logger.debug("Initialized %r from `%s`", comp, line.strip())
        return comp

    def init_data(self, options: dict[str, str], ctx: ComputeContext) -> None:
        """
        Apply component-specific options from a description line.

        Args:
            options (dict[str, str]): Remaining ``<Key>: value`` pairs.
            ctx (ComputeContext): Random source for parameter init.

        Raises:
            ConfigError: If an option is unknown or its value cannot be parsed.

        """
        parsed: dict[str, Any] = {}
        for key, raw in options.items():
            if key not in self.init_options:
                accepted = list(_COMMON_OPTIONS) + list(self.init_options)
                msg = f"Unknown token {key} for {self.marker}, a typo in config? (accepted: {accepted})"
                raise ConfigError(msg, token=key)
            try:
                parsed[key] = self.init_options[key](raw)
            except ValueError as exc:
                msg = f"Cannot parse value `{raw}` of {key} for {self.marker}."
                raise ConfigError(msg, token=key) from exc
        self._init_params(parsed, ctx)

    def _init_params(self, options: dict[str, Any], ctx: ComputeContext) -> None:  # noqa: ARG002
        """Initialize internal state from parsed options (no-op by default)."""
        return

    # ================================================
    # Persistence
    # ================================================
    def write(self, writer: TokenWriter, *, standard: bool = False) -> None:
        """
        Write this component as one framed record.

        Args:
            writer (TokenWriter): Destination.
            standard (bool): Omit id, wiring and name (chain exchange format).

        """
        writer.write_token(self.marker)
        writer.write_int(self._input_dim)
        writer.write_int(self._output_dim)
        if not standard:
            writer.write_token("<Id>")
            writer.write_int(self.id)
            writer.write_token("<Input>")
            writer.write_int_list(self.inputs)
            writer.write_token("<Offset>")
            writer.write_int_list(self.offsets)
            if self.name:
                writer.write_token("<Name>")
                writer.write_token(self.name)
        writer.newline()
        self.write_data(writer)
        writer.write_token(END_OF_COMPONENT)
        writer.newline()

    @staticmethod
    def read(reader: TokenReader, ctx: ComputeContext) -> Component | None:
        """
        Read one framed record.

        Args:
            reader (TokenReader): Source positioned at a record or at ``</Nnet>``.
            ctx (ComputeContext): Context providing the parameter dtype.

        Returns:
            Component | None: The component, or None at ``</Nnet>``. Records
            without an ``<Id>`` keep ``id == -1``.

        """
        token = reader.read_token()
        if token == "</Nnet>":
            return None
        cls = lookup_component(token)
        in_dim = reader.read_int()
        out_dim = reader.read_int()
        comp = cls(in_dim, out_dim)
        if reader.peek_token() == "<Id>":
            reader.expect_token("<Id>")
            comp.id = reader.read_int()
            reader.expect_token("<Input>")
            comp.inputs = reader.read_int_list()
            reader.expect_token("<Offset>")
            comp.offsets = reader.read_int_list()
            if reader.peek_token() == "<Name>":
                reader.expect_token("<Name>")
                comp.name = reader.read_token()
        comp.read_data(reader, ctx)
        reader.expect_token(END_OF_COMPONENT)
        return comp

    def read_data(self, reader: TokenReader, ctx: ComputeContext) -> None:  # noqa: ARG002
        """Read component-specific data (nothing by default)."""
        return

    def write_data(self, writer: TokenWriter) -> None:  # noqa: ARG002
        """Write component-specific data (nothing by default)."""
        return

    # ================================================
    # Reports
    # ================================================
    def info(self) -> str:
        """Return a short description of the component's parameters."""
        return ""

    def info_gradient(self) -> str:
        """Return a short description of the component's last gradient."""
        return ""

    def _summary_rows(self) -> list[SummaryRow]:
        return [
            ("marker", self.marker),
            ("id", str(self.id)),
            ("name", self.name or ""),
            ("dims", f"{self._input_dim} -> {self._output_dim}"),
            ("inputs", [(str(p), f"@{o}") for o, p in self.edges]),
        ]


class UpdatableComponent(Component):
    """
    A component with trainable parameters.

    Parameters are exposed through :meth:`parameter_layout` and
    :meth:`_parameters`; the flat-vector accessors are built on top of them so
    the graph never needs to know a component's concrete type.
    """

    kind: ClassVar[ComponentKind] = ComponentKind.UPDATABLE

    def __init__(self, input_dim: int, output_dim: int, **kwargs):
        super().__init__(input_dim, output_dim, **kwargs)
        self.train_options = TrainOptions()

    # ================================================
    # Parameter layout
    # ================================================
    @abstractmethod
    def parameter_layout(self) -> list[tuple[str, tuple[int, ...]]]:
        """Return ``(name, shape)`` of each parameter array in flattening order."""

    @abstractmethod
    def _parameters(self) -> list[np.ndarray]:
        """Return the live parameter arrays in :meth:`parameter_layout` order."""

    @abstractmethod
    def _gradients(self) -> list[np.ndarray]:
        """Return the accumulated gradient arrays in :meth:`parameter_layout` order."""

    @property
    def num_params(self) -> int:
        return int(sum(np.prod(shape, dtype=np.int64) for _, shape in self.parameter_layout()))

    @staticmethod
    def _flatten(arrays: list[np.ndarray]) -> np.ndarray:
        if not arrays:
            return np.zeros(0, dtype=np.float32)
        return np.concatenate([a.ravel() for a in arrays])

    def get_params(self) -> np.ndarray:
        """Return a copy of all parameters as one row-major flat vector."""
        return self._flatten(self._parameters())

    def get_gradient(self) -> np.ndarray:
        """Return the accumulated gradient as one flat vector."""
        return self._flatten(self._gradients())

    def set_params(self, params: np.ndarray) -> None:
        """
        Overwrite all parameters from a flat vector.

        Args:
            params (np.ndarray): Vector of length :attr:`num_params`.

        Raises:
            DimensionMismatchError: If the length is wrong.

        """
        params = np.asarray(params).ravel()
        if params.size != self.num_params:
            raise DimensionMismatchError(
                expected=self.num_params,
                received=params.size,
                message=(
                    f"Component {self.id} ({self.marker}) has {self.num_params} "
                    f"parameters, got a vector of length {params.size}."
                ),
            )
        start = 0
        for arr in self._parameters():
            arr[...] = params[start : start + arr.size].reshape(arr.shape)
            start += arr.size

    def set_train_options(self, options: TrainOptions) -> None:
        self.train_options = options

    # ================================================
    # Update
    # ================================================
    def update(self, inputs: np.ndarray, output_grad: np.ndarray) -> None:
        """
        Apply one gradient step using :attr:`train_options`.

        Args:
            inputs (np.ndarray): Forward input of the current batch.
            output_grad (np.ndarray): Gradient w.r.t. this component's output.

        """
        self._check_cols(inputs, self._input_dim, "Update input")
        self._check_cols(output_grad, self._output_dim, "Update gradient")
        self._update(inputs, output_grad)

    @abstractmethod
    def _update(self, inputs: np.ndarray, output_grad: np.ndarray) -> None: ...

    def info(self) -> str:
        return "".join(
            f"\n  {name} {moment_statistics(arr)}"
            for (name, _), arr in zip(self.parameter_layout(), self._parameters())
        )

    def info_gradient(self) -> str:
        return "".join(
            f"\n  {name}_grad {moment_statistics(arr)}"
            for (name, _), arr in zip(self.parameter_layout(), self._gradients())
        )

    def _summary_rows(self) -> list[SummaryRow]:
        rows = super()._summary_rows()
        rows.append(("num_params", str(self.num_params)))
        return rows
