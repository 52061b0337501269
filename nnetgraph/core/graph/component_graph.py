"""The component graph executor."""

from __future__ import annotations

import copy
import os
import time
from typing import IO, TYPE_CHECKING

import numpy as np
from rich.table import Table

from nnetgraph.core.component.base import Component, UpdatableComponent
from nnetgraph.core.component.protocols import (
    ChunkAware,
    DropoutAware,
    FrameFlagAware,
    Resettable,
    SequenceAware,
)
from nnetgraph.core.component.terminals import InputLayer, OutputLayer
from nnetgraph.core.context import ComputeContext
from nnetgraph.core.graph.assigner import TopologicalAssigner, default_offsets
from nnetgraph.core.graph.buffers import BufferArena
from nnetgraph.core.graph.description import StructureType, parse_description
from nnetgraph.core.graph.invariants import DETACHED, check_numeric, check_structure
from nnetgraph.core.io.tokens import reader_from, writer_to
from nnetgraph.core.training.options import TrainOptions
from nnetgraph.utils.errors.exceptions import (
    ConfigError,
    DimensionMismatchError,
    StructuralInvariantError,
)
from nnetgraph.utils.logging import get_logger, warn
from nnetgraph.utils.representation.summary import Summarizable
from nnetgraph.utils.stats import moment_statistics

if TYPE_CHECKING:
    from collections.abc import Iterator, Sequence

    from nnetgraph.utils.representation.summary import SummaryRow

logger = get_logger("graph")


def _is_chain(nodes: Sequence[Component | None]) -> bool:
    """True when `nodes` is exactly the layout a simple-chain graph maintains."""
    if len(nodes) < 2 or any(n is None for n in nodes):
        return False
    if not (nodes[0].is_input_terminal and nodes[-1].is_output_terminal):
        return False
    if any(n.is_input_terminal or n.is_output_terminal for n in nodes[1:-1]):
        return False
    return all(n.inputs == [i - 1] and n.offsets == [0] for i, n in enumerate(nodes))


class ComponentGraph(Summarizable):
    """
    An ordered DAG of components with forward, backward and update passes.

    Nodes are stored densely by id; every edge points from a lower id to a
    higher id, so executing nodes in id order is a valid schedule.

    Two structures are supported:

    - ``simple``: a chain. The graph owns a leading :class:`InputLayer` and
      a trailing :class:`OutputLayer` and rewires the chain after each
      mutation, so callers only manage the body.
    - ``graph``: an arbitrary DAG wired by name or id. Terminals are
      ordinary nodes supplied by the caller.

    Every structural mutation ends with :meth:`check`. A failing check
    raises and leaves the graph in the failed state.

    Example:
        ```python
        graph = ComponentGraph.from_description(
            '''
            <StructureType> graph
            <InputLayer> <InputDim> 4 <Name> x
            <AffineTransform> <InputDim> 4 <OutputDim> 3 <Name> h <Input> x
            <Sigmoid> <InputDim> 3 <Name> s <Input> h
            <OutputLayer> <InputDim> 3 <Name> y <Input> s
            ''',
        )
        out = graph.propagate(np.ones((2, 4), dtype=np.float32))
        ```

    """

    def __init__(
        self,
        ctx: ComputeContext | None = None,
        *,
        structure: StructureType = StructureType.SIMPLE,
    ):
        self.ctx = ctx or ComputeContext()
        self._structure = StructureType(structure)
        self._nodes: list[Component] = []
        self._terminals_in: list[int] = []
        self._terminals_out: list[int] = []
        self._arena = BufferArena(self.ctx)
        self._train_options = TrainOptions()
        self._propagate_time: list[float] = []
        self._backpropagate_time: list[float] = []
        self._forward_rows: int | None = None

    # ================================================
    # Construction
    # ================================================
    @classmethod
    def from_components(
        cls,
        components: Sequence[Component],
        *,
        structure: StructureType | str = StructureType.SIMPLE,
        ctx: ComputeContext | None = None,
    ) -> ComponentGraph:
        """
        Build a graph from components in declaration order.

        Args:
            components (Sequence[Component]): Components to own. In ``simple``
                structure these form the chain body (no terminals). In
                ``graph`` structure each must carry a unique ``name`` and
                ``input_names``.
            structure (StructureType | str): ``simple`` or ``graph``.
            ctx (ComputeContext | None): Shared numeric context.

        Returns:
            ComponentGraph: A checked graph.

        """
        graph = cls(ctx, structure=StructureType(structure))
        if graph.is_simple:
            graph._rechain(list(components))
        else:
            graph._nodes = TopologicalAssigner().assign(components)
        graph._refresh()
        logger.debug("Built %s", graph)
        return graph

    @classmethod
    def from_description(cls, text: str, ctx: ComputeContext | None = None) -> ComponentGraph:
        """
        Build a graph from description text (see :func:`parse_description`).

        Raises:
            ConfigError: On malformed lines or an empty description.
            CycleError: If a ``graph`` description has a cycle.
            StructuralInvariantError: If the result violates an invariant.

        """
        ctx = ctx or ComputeContext()
        desc = parse_description(text.splitlines(), ctx)
        if not desc.components:
            msg = "The network description contains no components."
            raise ConfigError(msg)
        return cls.from_components(desc.components, structure=desc.structure, ctx=ctx)

    @classmethod
    def init(cls, path: str | os.PathLike, ctx: ComputeContext | None = None) -> ComponentGraph:
        """Build a graph from a description file."""
        with open(path, encoding="utf-8") as f:
            return cls.from_description(f.read(), ctx)

    # ================================================
    # Properties & accessors
    # ================================================
    @property
    def structure(self) -> StructureType:
        return self._structure

    @property
    def is_simple(self) -> bool:
        return self._structure is StructureType.SIMPLE

    @property
    def nodes(self) -> tuple[Component, ...]:
        return tuple(self._nodes)

    @property
    def terminals_in(self) -> list[int]:
        return list(self._terminals_in)

    @property
    def terminals_out(self) -> list[int]:
        return list(self._terminals_out)

    @property
    def input_dim(self) -> int:
        """Input dim of the first input terminal (0 for an empty graph)."""
        return self._nodes[self._terminals_in[0]].input_dim if self._terminals_in else 0

    @property
    def output_dim(self) -> int:
        """Output dim of the last output terminal (0 for an empty graph)."""
        return self._nodes[self._terminals_out[-1]].output_dim if self._terminals_out else 0

    @property
    def train_options(self) -> TrainOptions:
        return self._train_options

    def __len__(self) -> int:
        return len(self._nodes)

    def __getitem__(self, node_id: int) -> Component:
        return self._nodes[node_id]

    def __iter__(self) -> Iterator[Component]:
        return iter(self._nodes)

    def __repr__(self) -> str:
        return (
            f"ComponentGraph(structure={self._structure.value}, nodes={len(self._nodes)}, "
            f"inputs={self._terminals_in}, outputs={self._terminals_out})"
        )

    def index_of(self, name: str) -> int:
        """
        Return the id of the node called `name`.

        Raises:
            KeyError: If no node has that name.

        """
        for node in self._nodes:
            if node.name == name:
                return node.id
        msg = f"No component named `{name}`."
        raise KeyError(msg)

    def _updatable(self) -> list[UpdatableComponent]:
        return [n for n in self._nodes if isinstance(n, UpdatableComponent)]

    # ================================================
    # Structure maintenance
    # ================================================
    def _rechain(self, body: list[Component]) -> None:
        """Rebuild terminals and sequential wiring around a chain body."""
        if not body:
            self._nodes = []
            return
        head = InputLayer(body[0].input_dim, body[0].input_dim)
        tail = OutputLayer(body[-1].output_dim, body[-1].output_dim)
        self._nodes = [head, *body, tail]
        for i, node in enumerate(self._nodes):
            node.id = i
            node.set_mono_input(i - 1)

    def _body(self) -> list[Component]:
        return self._nodes[1:-1] if self._nodes else []

    def _refresh(self) -> None:
        """Recompute terminals, buffers and timers, then run :meth:`check`."""
        self._terminals_in = [n.id for n in self._nodes if n is not None and n.is_input_terminal]
        self._terminals_out = [n.id for n in self._nodes if n is not None and n.is_output_terminal]
        if all(n is not None for n in self._nodes):
            self._arena.rebuild(self._nodes)
        self._propagate_time = [0.0] * len(self._nodes)
        self._backpropagate_time = [0.0] * len(self._nodes)
        self._forward_rows = None
        for node in self._updatable():
            node.set_train_options(self._train_options)
        self.check()

    def _check_index(self, node_id: int) -> None:
        if not 0 <= node_id < len(self._nodes):
            msg = f"Component id {node_id} out of range [0, {len(self._nodes)})."
            raise IndexError(msg)

    def _check_body_index(self, node_id: int) -> None:
        self._check_index(node_id)
        if node_id in (0, len(self._nodes) - 1):
            msg = (
                f"Component {node_id} is a terminal managed by the simple-chain graph "
                "and cannot be replaced or removed."
            )
            raise StructuralInvariantError(msg, node_id=node_id)

    def _wire(self, node: Component, peers: Sequence[Component]) -> None:
        """Resolve a graph-mode node's inputs against `peers`."""
        names = {p.name: p.id for p in peers if p.name}
        if node.name and node.name in names:
            msg = f"Duplicate component name `{node.name}`."
            raise ConfigError(msg, token=node.name)

        if node.is_input_terminal or node.input_names == ["-1"]:
            node.set_mono_input(-1)
            return
        if node.input_names:
            missing = [n for n in node.input_names if n not in names]
            if missing:
                msg = f"Component `{node.name}` has unresolved input names {missing}."
                raise ConfigError(msg, token=missing[0])
            node.inputs = [names[n] for n in node.input_names]
        elif not node.inputs:
            node.inputs = [node.id - 1]

        if not node.offsets:
            by_id = {p.id: p for p in peers}
            if all(p in by_id for p in node.inputs):
                node.offsets = default_offsets([by_id[p].output_dim for p in node.inputs])
            else:
                node.offsets = [0] * len(node.inputs)

    def check(self) -> None:
        """
        Validate every structural and numeric invariant.

        Raises:
            StructuralInvariantError: On a missing terminal, a null slot, an id
                that differs from its index, or an invalid edge.
            NumericInstabilityError: If the parameter sum is not finite.

        """
        check_structure(self._nodes, self._terminals_in, self._terminals_out)
        check_numeric(self.get_params())

    # ================================================
    # Structural mutation
    # ================================================
    def append_node(self, node: Component) -> ComponentGraph:
        """
        Append a component.

        In ``simple`` structure the component extends the chain body. In
        ``graph`` structure it receives the next id and is wired by its
        ``input_names`` (or to the previous node when it declares none).

        Returns:
            ComponentGraph: self

        """
        if self.is_simple:
            self._rechain([*self._body(), node])
        else:
            node.id = len(self._nodes)
            self._wire(node, self._nodes)
            self._nodes.append(node)
        logger.debug("Appended %r", node)
        self._refresh()
        return self

    def replace_node(self, node_id: int, node: Component) -> ComponentGraph:
        """
        Replace the component at `node_id`, keeping its id.

        In ``graph`` structure a replacement without inputs inherits the
        wiring (and name, if it has none) of the component it replaces.

        Returns:
            ComponentGraph: self

        """
        if self.is_simple:
            self._check_body_index(node_id)
            body = self._body()
            body[node_id - 1] = node
            self._rechain(body)
        else:
            self._check_index(node_id)
            old = self._nodes[node_id]
            node.id = node_id
            if node.name is None:
                node.name = old.name
            if not node.input_names and not node.inputs:
                node.inputs = list(old.inputs)
                node.offsets = list(old.offsets)
            peers = [n for n in self._nodes if n is not old]
            self._wire(node, peers)
            self._nodes[node_id] = node
        logger.debug("Replaced component %d with %r", node_id, node)
        self._refresh()
        return self

    def remove_node(self, node_id: int) -> ComponentGraph:
        """
        Remove the component at `node_id` and renumber the rest densely.

        In ``graph`` structure, edges pointing at the removed component are
        left detached and the closing check fails with
        :class:`StructuralInvariantError`.

        Returns:
            ComponentGraph: self

        """
        if self.is_simple:
            self._check_body_index(node_id)
            body = self._body()
            del body[node_id - 1]
            self._rechain(body)
        else:
            self._check_index(node_id)
            del self._nodes[node_id]
            for new_id, node in enumerate(self._nodes):
                node.id = new_id
                node.inputs = [
                    DETACHED if p == node_id else (p - 1 if p > node_id else p)
                    for p in node.inputs
                ]
        logger.debug("Removed component %d", node_id)
        self._refresh()
        return self

    def append_graph(self, other: ComponentGraph) -> ComponentGraph:
        """
        Append copies of another simple chain's body to this simple chain.

        Raises:
            StructuralInvariantError: If either graph is not a simple chain.

        Returns:
            ComponentGraph: self

        """
        if not (self.is_simple and other.is_simple):
            msg = "append_graph is only defined for simple chains."
            raise StructuralInvariantError(msg)
        self._rechain([*self._body(), *(n.copy() for n in other._body())])
        self._refresh()
        return self

    def copy(self) -> ComponentGraph:
        """Return a deep copy sharing this graph's :class:`ComputeContext`."""
        clone = ComponentGraph(self.ctx, structure=self._structure)
        clone._nodes = [copy.deepcopy(n) for n in self._nodes]
        clone._train_options = self._train_options
        if clone._nodes:
            clone._refresh()
        return clone

    # ================================================
    # Forward & backward passes
    # ================================================
    def _as_matrices(
        self,
        values: np.ndarray | Sequence[np.ndarray],
        terminals: Sequence[int],
        dim_of: str,
        what: str,
    ) -> tuple[list[np.ndarray], bool]:
        """Normalize and validate caller matrices against `terminals`."""
        single = isinstance(values, np.ndarray)
        mats = [values] if single else list(values)
        if single and len(terminals) != 1:
            msg = f"A single {what} matrix needs exactly one terminal, graph has {len(terminals)}."
            raise DimensionMismatchError(expected=len(terminals), received=1, message=msg)
        if len(mats) != len(terminals):
            msg = f"Expected {len(terminals)} {what} matrices, got {len(mats)}."
            raise DimensionMismatchError(expected=len(terminals), received=len(mats), message=msg)

        mats = [self.ctx.asarray(m) for m in mats]
        rows = mats[0].shape[0] if mats and mats[0].ndim == 2 else None
        for m, t in zip(mats, terminals):
            cols = getattr(self._nodes[t], dim_of)
            if m.ndim != 2 or m.shape[1] != cols:
                msg = f"{what.capitalize()} for terminal {t} must have {cols} columns, got shape {m.shape}."
                raise DimensionMismatchError(expected=cols, received=m.shape, message=msg)
            if m.shape[0] != rows:
                msg = f"All {what} matrices must have the same number of rows."
                raise DimensionMismatchError(expected=rows, received=m.shape[0], message=msg)
        return mats, single

    def _forward(self, inputs: np.ndarray | Sequence[np.ndarray], *, training: bool):
        if not self._nodes:
            single = isinstance(inputs, np.ndarray)
            mats = [inputs] if single else list(inputs)
            if len(mats) != 1:
                msg = "An empty graph passes through exactly one matrix."
                raise DimensionMismatchError(expected=1, received=len(mats), message=msg)
            out = self.ctx.asarray(mats[0]).copy()
            return out if single else [out]

        mats, single = self._as_matrices(inputs, self._terminals_in, "input_dim", "input")
        rows = mats[0].shape[0]

        self._arena.reset_inputs(rows)
        for t, m in zip(self._terminals_in, mats):
            self._arena[t].input[...] = m

        for node in self._nodes:
            buf = self._arena[node.id]
            if not node.is_input_terminal:
                for offset, producer_id in node.edges:
                    produced = self._arena[producer_id].output
                    buf.input[:, offset : offset + produced.shape[1]] += produced
            start = time.perf_counter()
            if training:
                out = node.propagate(buf.input, self.ctx)
            else:
                out = node.feedforward(buf.input, self.ctx)
            self._propagate_time[node.id] += time.perf_counter() - start
            if out.shape != (rows, node.output_dim):
                msg = f"Component {node.id} ({node.marker}) produced shape {out.shape}, expected {(rows, node.output_dim)}."
                raise DimensionMismatchError(expected=(rows, node.output_dim), received=out.shape, message=msg)
            buf.output = self.ctx.asarray(out)

        self._forward_rows = rows if training else None
        outputs = [self._arena[t].output.copy() for t in self._terminals_out]
        return outputs[0] if single and len(outputs) == 1 else outputs

    def propagate(self, inputs: np.ndarray | Sequence[np.ndarray]):
        """
        Run the training-mode forward pass.

        Args:
            inputs (np.ndarray | Sequence[np.ndarray]): One matrix per input
                terminal, in terminal order. A bare matrix is accepted when
                the graph has exactly one input terminal.

        Returns:
            np.ndarray | list[np.ndarray]: Freshly allocated output-terminal
            matrices in terminal order; a bare matrix when a bare matrix was
            passed and there is exactly one output terminal.

        Raises:
            DimensionMismatchError: On wrong arity, rows or columns. Raised
                before any buffer is modified.

        """
        return self._forward(inputs, training=True)

    def feedforward(self, inputs: np.ndarray | Sequence[np.ndarray]):
        """Run the inference-mode forward pass (see :meth:`propagate`)."""
        return self._forward(inputs, training=False)

    def backpropagate(
        self,
        output_grads: np.ndarray | Sequence[np.ndarray],
        input_grad_mask: Sequence[bool] | None = None,
    ):
        """
        Run the backward pass and update every updatable component.

        Components are visited in reverse id order. Each updatable component
        is updated with its output gradient before its input gradient is
        distributed to its producers.

        Args:
            output_grads (np.ndarray | Sequence[np.ndarray]): One gradient per
                output terminal, shaped like the last :meth:`propagate` output.
            input_grad_mask (Sequence[bool] | None): Per input terminal,
                whether to return its gradient. Defaults to all.

        Returns:
            np.ndarray | list[np.ndarray | None]: Input-terminal gradients in
            terminal order (None where masked out).

        Raises:
            DimensionMismatchError: On wrong arity/shape, or when no
                :meth:`propagate` preceded this call.
            NumericInstabilityError: If an update produced non-finite parameters.

        """
        if self._forward_rows is None:
            msg = "backpropagate requires a preceding propagate on the current structure."
            raise DimensionMismatchError(message=msg)
        if not self._nodes:
            msg = "Cannot backpropagate through an empty graph."
            raise DimensionMismatchError(message=msg)

        grads, single = self._as_matrices(output_grads, self._terminals_out, "output_dim", "gradient")
        if grads[0].shape[0] != self._forward_rows:
            msg = f"Gradients have {grads[0].shape[0]} rows but the forward pass had {self._forward_rows}."
            raise DimensionMismatchError(expected=self._forward_rows, received=grads[0].shape[0], message=msg)
        mask = [True] * len(self._terminals_in) if input_grad_mask is None else list(input_grad_mask)
        if len(mask) != len(self._terminals_in):
            msg = f"input_grad_mask needs {len(self._terminals_in)} entries, got {len(mask)}."
            raise DimensionMismatchError(expected=len(self._terminals_in), received=len(mask), message=msg)

        self._arena.reset_output_grads(self._forward_rows)
        for t, g in zip(self._terminals_out, grads):
            self._arena[t].output_grad[...] = g

        updated = False
        for node in reversed(self._nodes):
            buf = self._arena[node.id]
            start = time.perf_counter()
            buf.input_grad = self.ctx.asarray(
                node.backpropagate(buf.input, buf.output, buf.output_grad, self.ctx),
            )
            if isinstance(node, UpdatableComponent):
                node.update(buf.input, buf.output_grad)
                updated = True
            self._backpropagate_time[node.id] += time.perf_counter() - start
            if node.is_input_terminal:
                continue
            for offset, producer_id in node.edges:
                target = self._arena[producer_id].output_grad
                target += buf.input_grad[:, offset : offset + target.shape[1]]

        if updated:
            check_numeric(self.get_params())

        result = [
            self._arena[t].input_grad.copy() if keep else None
            for t, keep in zip(self._terminals_in, mask)
        ]
        return result[0] if single and len(result) == 1 else result

    # ================================================
    # Parameters & options
    # ================================================
    @property
    def num_params(self) -> int:
        return sum(n.num_params for n in self._updatable())

    def get_params(self) -> np.ndarray:
        """Concatenate every updatable component's parameters in id order."""
        parts = [n.get_params() for n in self._updatable()]
        return np.concatenate(parts) if parts else np.zeros(0, dtype=self.ctx.dtype)

    def get_gradient(self) -> np.ndarray:
        """Concatenate every updatable component's accumulated gradient in id order."""
        parts = [n.get_gradient() for n in self._updatable()]
        return np.concatenate(parts) if parts else np.zeros(0, dtype=self.ctx.dtype)

    def set_params(self, params: np.ndarray) -> None:
        """
        Distribute a flat vector over the updatable components in id order.

        Raises:
            DimensionMismatchError: If the length differs from :attr:`num_params`.

        """
        params = np.asarray(params).ravel()
        if params.size != self.num_params:
            raise DimensionMismatchError(expected=self.num_params, received=params.size)
        start = 0
        for node in self._updatable():
            node.set_params(params[start : start + node.num_params])
            start += node.num_params

    def set_train_options(self, options: TrainOptions) -> None:
        """Store `options` and forward them to every updatable component."""
        self._train_options = options
        for node in self._updatable():
            node.set_train_options(options)

    # ================================================
    # Capability broadcasts
    # ================================================
    def set_dropout_retention(self, retention: float) -> None:
        for node in self._nodes:
            if isinstance(node, DropoutAware):
                old = node.dropout_retention
                node.set_dropout_retention(retention)
                logger.info(
                    "Setting dropout-retention in component %d from %s to %s",
                    node.id,
                    old,
                    retention,
                )

    def reset_streams(self, stream_reset_flags: Sequence[int]) -> None:
        for node in self._nodes:
            if isinstance(node, Resettable):
                node.reset_streams(stream_reset_flags)

    def set_seq_lengths(self, seq_lengths: Sequence[int]) -> None:
        for node in self._nodes:
            if isinstance(node, SequenceAware):
                node.set_seq_lengths(seq_lengths)

    def set_chunk_size(self, chunk_size: int) -> None:
        for node in self._nodes:
            if isinstance(node, ChunkAware):
                node.set_chunk_size(chunk_size)

    def set_flags(self, flags: np.ndarray) -> None:
        for node in self._nodes:
            if isinstance(node, FrameFlagAware):
                node.set_flags(flags)

    # ================================================
    # Persistence
    # ================================================
    def write(
        self,
        target: str | os.PathLike | IO,
        *,
        binary: bool = False,
        standard: bool = False,
    ) -> None:
        """
        Persist the graph.

        Args:
            target (str | os.PathLike | IO): Path, text stream, or (for
                `binary`) byte stream.
            binary (bool): Use the binary encoding.
            standard (bool): Write only non-terminal components without ids
                or wiring, as a plain chain.

        """
        self.check()
        with writer_to(target, binary=binary) as writer:
            writer.write_token("<Nnet>")
            writer.newline()
            for node in self._nodes:
                if standard and (node.is_input_terminal or node.is_output_terminal):
                    continue
                node.write(writer, standard=standard)
            writer.write_token("</Nnet>")
            writer.newline()

    def write_standard(self, target: str | os.PathLike | IO, *, binary: bool = False) -> None:
        """Shorthand for ``write(target, binary=binary, standard=True)``."""
        self.write(target, binary=binary, standard=True)

    @classmethod
    def read(
        cls,
        source: str | os.PathLike | IO,
        ctx: ComputeContext | None = None,
    ) -> ComponentGraph:
        """
        Load a persisted graph (text or binary, detected automatically).

        Records carrying ids are placed by id; records without ids are
        assembled into a simple chain. Records with ids that form a plain
        chain (input terminal, body wired one after another, output
        terminal) are restored with ``simple`` structure. The learning rate
        is reset to 0.

        Raises:
            StructuralInvariantError: If an id repeats or the result is invalid.
            NumericInstabilityError: If the loaded parameters are not finite.

        """
        ctx = ctx or ComputeContext()
        reader = reader_from(source)
        reader.expect_token("<Nnet>")
        records: list[Component] = []
        while (comp := Component.read(reader, ctx)) is not None:
            records.append(comp)

        if not records:
            warn(f"The network '{source}' is empty.", stacklevel=2)
            return cls(ctx)

        with_ids = [c for c in records if c.id >= 0]
        if not with_ids:
            graph = cls(ctx, structure=StructureType.SIMPLE)
            graph._rechain(records)
        elif len(with_ids) != len(records):
            msg = "Persisted network mixes records with and without <Id>."
            raise StructuralInvariantError(msg)
        else:
            slots: list[Component | None] = [None] * (max(c.id for c in records) + 1)
            for comp in records:
                if slots[comp.id] is not None:
                    msg = f"Component id {comp.id} is already taken; ids must be unique."
                    raise StructuralInvariantError(msg, node_id=comp.id)
                slots[comp.id] = comp
            structure = StructureType.SIMPLE if _is_chain(slots) else StructureType.GRAPH
            graph = cls(ctx, structure=structure)
            graph._nodes = slots

        graph._train_options = graph._train_options.with_updates(learn_rate=0.0)
        graph._refresh()
        return graph

    # ================================================
    # Reports
    # ================================================
    def info(self) -> str:
        lines = [
            f"num-components {len(self._nodes)}",
            f"input-dim {self.input_dim}",
            f"output-dim {self.output_dim}",
            f"number-of-parameters {self.num_params / 1e6} millions",
        ]
        for node in self._nodes:
            edges = ",".join(f"{p}:{o}" for o, p in node.edges)
            lines.append(
                f"component {node.id + 1} : {node.marker}, input-dim {node.input_dim}, "
                f"output-dim {node.output_dim}, id {node.id}, input {edges}  {node.info()}",
            )
        return "\n".join(lines) + "\n"

    def info_gradient(self) -> str:
        lines = ["### Gradient stats :"]
        lines.extend(
            f"Component {n.id + 1} : {n.marker}, {n.info_gradient()}" for n in self._nodes
        )
        return "\n".join(lines) + "\n"

    def info_propagate(self) -> str:
        lines = ["### Forward propagation buffer content :"]
        lines.extend(
            f"[{n.id}] output of {n.marker} {moment_statistics(self._arena[n.id].output)}"
            for n in self._nodes
        )
        return "\n".join(lines) + "\n"

    def info_backpropagate(self) -> str:
        lines = ["### Backward propagation buffer content :"]
        lines.extend(
            f"[{n.id}] diff-output of {n.marker} {moment_statistics(self._arena[n.id].output_grad)}"
            for n in self._nodes
        )
        return "\n".join(lines) + "\n"

    def to_dot(self) -> str:
        """Render the graph as a Graphviz digraph; edges are labelled with offsets."""
        lines = [
            "digraph net{",
            "rankdir=BT",
            "node[shape = box; height = 1; width = 3; fontsize = 40];",
            "edge[minlen = 1 ]",
        ]
        for node in self._nodes:
            lines.append(f'{node.id} [label = "{node.name or node.marker}"]')
            if node.inputs == [-1]:
                continue
            lines.extend(
                f"\t{p} -> {node.id} [label = {o}; fontsize = 40]" for o, p in node.edges
            )
        lines.append("}")
        return "\n".join(lines) + "\n"

    def component_times(self) -> list[tuple[int, str, float, float]]:
        """Return ``(id, marker, propagate_s, backpropagate_s)`` per component."""
        return [
            (n.id, n.marker, self._propagate_time[n.id], self._backpropagate_time[n.id])
            for n in self._nodes
        ]

    def reset_component_times(self) -> None:
        self._propagate_time = [0.0] * len(self._nodes)
        self._backpropagate_time = [0.0] * len(self._nodes)

    def log_component_times(self) -> None:
        """Log accumulated per-component wall time, then reset the counters."""
        for node_id, marker, fwd, bwd in self.component_times():
            logger.info(
                "%d %s: Propagate time %.6fs, Back-Propagate time %.6fs, total time %.6fs",
                node_id,
                marker,
                fwd,
                bwd,
                fwd + bwd,
                extra={"omit_origin": True},
            )
        self.reset_component_times()

    def component_time_table(self) -> Table:
        """Return accumulated per-component wall time as a :class:`rich.table.Table`."""
        table = Table(title="Component timings")
        table.add_column("id", justify="right")
        table.add_column("component")
        table.add_column("name")
        table.add_column("propagate (s)", justify="right")
        table.add_column("backpropagate (s)", justify="right")
        table.add_column("total (s)", justify="right")
        for node_id, marker, fwd, bwd in self.component_times():
            table.add_row(
                str(node_id),
                marker,
                self._nodes[node_id].name or "",
                f"{fwd:.6f}",
                f"{bwd:.6f}",
                f"{fwd + bwd:.6f}",
            )
        return table

    def _summary_rows(self) -> list[SummaryRow]:
        return [
            ("structure", self._structure.value),
            ("num_components", str(len(self._nodes))),
            ("inputs", [(str(t), "") for t in self._terminals_in]),
            ("outputs", [(str(t), "") for t in self._terminals_out]),
            ("num_params", str(self.num_params)),
            (
                "components",
                [
                    (
                        str(n.id),
                        f"{n.marker} {n.input_dim}->{n.output_dim}"
                        + (f" '{n.name}'" if n.name else "")
                        + f" <- {n.inputs}",
                    )
                    for n in self._nodes
                ],
            ),
        ]
