"""Unit tests for nnetgraph.core.graph.component_graph module."""

import logging

import numpy as np
import pytest
from rich.table import Table

from nnetgraph import (
    AffineTransform,
    ComponentGraph,
    ComputeContext,
    ConfigError,
    DimensionMismatchError,
    Dropout,
    Identity,
    InputLayer,
    NumericInstabilityError,
    OutputLayer,
    Sigmoid,
    StructuralInvariantError,
    StructureType,
    Tanh,
    TrainOptions,
)
from tests.conftest import random_matrix

CONCAT_DESCRIPTION = """
<StructureType> graph
<InputLayer> <InputDim> 3 <Name> a
<InputLayer> <InputDim> 3 <Name> b
<Identity> <InputDim> 6 <Name> cat <Input> a,b
<OutputLayer> <InputDim> 6 <Name> y <Input> cat
"""


def _chain_graph(*dims, ctx=None):
    """x -> identity -> ... -> y with named nodes (graph structure)."""
    nodes = [InputLayer(dims[0], dims[0], name="x")]
    prev = "x"
    for i, d in enumerate(dims):
        nodes.append(Identity(d, d, name=f"n{i}", input_names=[prev]))
        prev = f"n{i}"
    nodes.append(OutputLayer(dims[-1], dims[-1], name="y", input_names=[prev]))
    return ComponentGraph.from_components(nodes, structure="graph", ctx=ctx)


# ---------------------------------------------------------------------
# Construction
# ---------------------------------------------------------------------
@pytest.mark.unit
def test_simple_description_is_auto_completed(simple_graph):
    """Simple chains gain an input and an output terminal."""
    nodes = simple_graph.nodes
    assert simple_graph.structure is StructureType.SIMPLE
    assert isinstance(nodes[0], InputLayer)
    assert isinstance(nodes[-1], OutputLayer)
    assert nodes[0].input_dim == 4
    assert nodes[-1].output_dim == 2
    assert [n.id for n in nodes] == list(range(6))
    assert [n.inputs for n in nodes] == [[-1], [0], [1], [2], [3], [4]]
    assert simple_graph.terminals_in == [0]
    assert simple_graph.terminals_out == [5]
    assert simple_graph.input_dim == 4
    assert simple_graph.output_dim == 2


@pytest.mark.unit
def test_graph_description_assigns_ids(affine_graph):
    """Every edge points from a lower id to a higher one."""
    for node in affine_graph:
        if node.is_input_terminal:
            continue
        assert all(0 <= p < node.id for p in node.inputs)
    top = affine_graph[affine_graph.index_of("top")]
    assert top.offsets == [0, 3]


@pytest.mark.unit
def test_empty_description_raises():
    with pytest.raises(ConfigError, match="no components"):
        ComponentGraph.from_description("<NnetProto>\n</NnetProto>\n")


@pytest.mark.unit
def test_init_reads_description_file(tmp_path):
    path = tmp_path / "proto.txt"
    path.write_text("<Sigmoid> <InputDim> 3\n")
    graph = ComponentGraph.init(path)
    assert len(graph) == 3


# ---------------------------------------------------------------------
# Forward & backward
# ---------------------------------------------------------------------
@pytest.mark.unit
def test_identity_graph_round_trips_values():
    """Identity-only graph: output equals input, input grad equals output grad."""
    graph = ComponentGraph.from_description("<Identity> <InputDim> 5\n")
    x = random_matrix(4, 5)
    g = random_matrix(4, 5, seed=1)

    out = graph.propagate(x)
    assert isinstance(out, np.ndarray)
    np.testing.assert_array_equal(out, x)
    np.testing.assert_array_equal(graph.backpropagate(g), g)


@pytest.mark.unit
def test_empty_graph_propagate_copies_input():
    graph = ComponentGraph()
    x = random_matrix(2, 3)
    out = graph.propagate(x)
    np.testing.assert_array_equal(out, x)
    assert out is not x


@pytest.mark.unit
def test_fanout_forward_places_producers_at_offsets(fanout_graph):
    x = np.array([[1, 2, 3], [4, 5, 6]], dtype=np.float32)
    out = fanout_graph.propagate(x)
    expected = np.array(
        [[1, 2, 3, 1, 2, 3], [4, 5, 6, 4, 5, 6]],
        dtype=np.float32,
    )
    np.testing.assert_array_equal(out, expected)


@pytest.mark.unit
def test_fanout_backward_sums_gradients(fanout_graph):
    """Gradient slices [0:3] and [3:6] are added back into the shared producer."""
    fanout_graph.propagate(np.zeros((2, 3), dtype=np.float32))
    g = np.array(
        [[1, 2, 3, 10, 20, 30], [4, 5, 6, 40, 50, 60]],
        dtype=np.float32,
    )
    grad = fanout_graph.backpropagate(g)
    expected = np.array([[11, 22, 33], [44, 55, 66]], dtype=np.float32)
    np.testing.assert_array_equal(grad, expected)


@pytest.mark.unit
def test_multiple_inputs_are_concatenated_and_split():
    graph = ComponentGraph.from_description(CONCAT_DESCRIPTION)
    assert [graph[t].name for t in graph.terminals_in] == ["a", "b"]
    a = np.array([[1, 2, 3], [4, 5, 6]], dtype=np.float32)
    b = np.array([[7, 8, 9], [10, 11, 12]], dtype=np.float32)

    (out,) = graph.propagate([a, b])
    np.testing.assert_array_equal(out, np.hstack([a, b]))

    g = np.arange(12, dtype=np.float32).reshape(2, 6)
    grad_a, grad_b = graph.backpropagate([g])
    np.testing.assert_array_equal(grad_a, g[:, :3])
    np.testing.assert_array_equal(grad_b, g[:, 3:])


@pytest.mark.unit
def test_input_terminals_follow_declaration_order():
    """Matrices are matched to input terminals in the order they were declared."""
    graph = ComponentGraph.from_description(
        """
        <StructureType> graph
        <InputLayer> <InputDim> 2 <Name> first
        <InputLayer> <InputDim> 3 <Name> second
        <Identity> <InputDim> 5 <Name> cat <Input> first,second
        <OutputLayer> <InputDim> 5 <Name> y <Input> cat
        """,
    )
    assert [graph[t].name for t in graph.terminals_in] == ["first", "second"]
    a = np.ones((1, 2), dtype=np.float32)
    b = np.full((1, 3), 2.0, dtype=np.float32)
    (out,) = graph.propagate([a, b])
    np.testing.assert_array_equal(out, [[1, 1, 2, 2, 2]])


@pytest.mark.unit
def test_output_terminals_follow_declaration_order():
    graph = ComponentGraph.from_description(
        """
        <StructureType> graph
        <InputLayer> <InputDim> 2 <Name> x
        <Sigmoid> <InputDim> 2 <Name> h <Input> x
        <OutputLayer> <InputDim> 2 <Name> squashed <Input> h
        <OutputLayer> <InputDim> 2 <Name> raw <Input> x
        """,
    )
    assert [graph[t].name for t in graph.terminals_out] == ["squashed", "raw"]
    squashed, raw = graph.propagate([np.zeros((1, 2), dtype=np.float32)])
    np.testing.assert_allclose(squashed, [[0.5, 0.5]])
    np.testing.assert_array_equal(raw, [[0.0, 0.0]])


@pytest.mark.unit
def test_input_grad_mask_skips_slots():
    graph = ComponentGraph.from_description(CONCAT_DESCRIPTION)
    x = np.ones((2, 3), dtype=np.float32)
    graph.propagate([x, x])
    grads = graph.backpropagate([np.ones((2, 6), dtype=np.float32)], input_grad_mask=[False, True])
    assert grads[0] is None
    np.testing.assert_array_equal(grads[1], np.ones((2, 3)))


@pytest.mark.unit
def test_propagate_returns_fresh_arrays(fanout_graph):
    x = np.ones((2, 3), dtype=np.float32)
    first = fanout_graph.propagate(x)
    first[...] = 99
    second = fanout_graph.propagate(x)
    np.testing.assert_array_equal(second, np.ones((2, 6)))


@pytest.mark.unit
def test_feedforward_matches_propagate_without_dropout(affine_graph):
    x = random_matrix(3, 4)
    np.testing.assert_allclose(affine_graph.feedforward(x), affine_graph.propagate(x))


@pytest.mark.unit
def test_backpropagate_updates_before_distributing():
    """Input gradient uses the weights of the forward pass; weights then move by lr * G^T X."""
    affine = AffineTransform(2, 2, name="a", input_names=["x"])
    graph = ComponentGraph.from_components(
        [
            InputLayer(2, 2, name="x"),
            affine,
            OutputLayer(2, 2, name="y", input_names=["a"]),
        ],
        structure="graph",
    )
    w = np.array([[1.0, 2.0], [3.0, 4.0]], dtype=np.float32)
    b = np.array([0.5, -0.5], dtype=np.float32)
    graph.set_params(np.concatenate([w.ravel(), b]))
    graph.set_train_options(TrainOptions(learn_rate=0.1))

    x = np.array([[1.0, 0.0], [0.0, 1.0]], dtype=np.float32)
    g = np.array([[1.0, 1.0], [0.0, 2.0]], dtype=np.float32)
    out = graph.propagate(x)
    np.testing.assert_allclose(out, x @ w.T + b)

    grad = graph.backpropagate(g)
    np.testing.assert_allclose(grad, g @ w)
    np.testing.assert_allclose(affine.linearity, w - 0.1 * (g.T @ x), rtol=1e-6)
    np.testing.assert_allclose(affine.bias, b - 0.1 * g.sum(axis=0), rtol=1e-6)
    np.testing.assert_allclose(graph.get_gradient()[:4], (g.T @ x).ravel())


@pytest.mark.unit
def test_training_reduces_loss(simple_graph):
    """A few SGD steps on a fixed batch lower the cross-entropy."""
    x = random_matrix(8, 4, seed=3)
    labels = np.eye(2, dtype=np.float32)[np.arange(8) % 2]
    simple_graph.set_train_options(TrainOptions(learn_rate=0.02, momentum=0.5))

    def loss():
        post = simple_graph.feedforward(x)
        return float(-np.sum(labels * np.log(post + 1e-9)))

    before = loss()
    for _ in range(30):
        post = simple_graph.propagate(x)
        simple_graph.backpropagate(post - labels)
    assert loss() < before


# ---------------------------------------------------------------------
# Dimension errors
# ---------------------------------------------------------------------
@pytest.mark.unit
def test_propagate_rejects_wrong_columns(fanout_graph):
    with pytest.raises(DimensionMismatchError, match="3 columns"):
        fanout_graph.propagate(np.zeros((2, 4), dtype=np.float32))


@pytest.mark.unit
def test_propagate_rejects_wrong_arity():
    graph = ComponentGraph.from_description(CONCAT_DESCRIPTION)
    with pytest.raises(DimensionMismatchError, match="Expected 2 input"):
        graph.propagate([np.zeros((2, 3), dtype=np.float32)])
    with pytest.raises(DimensionMismatchError, match="single input"):
        graph.propagate(np.zeros((2, 3), dtype=np.float32))


@pytest.mark.unit
def test_propagate_rejects_row_mismatch():
    graph = ComponentGraph.from_description(CONCAT_DESCRIPTION)
    with pytest.raises(DimensionMismatchError, match="same number of rows"):
        graph.propagate([np.zeros((2, 3)), np.zeros((3, 3))])


@pytest.mark.unit
def test_backpropagate_requires_propagate(fanout_graph):
    with pytest.raises(DimensionMismatchError, match="preceding propagate"):
        fanout_graph.backpropagate(np.zeros((2, 6), dtype=np.float32))


@pytest.mark.unit
def test_backpropagate_after_feedforward_only_raises(fanout_graph):
    fanout_graph.feedforward(np.zeros((2, 3), dtype=np.float32))
    with pytest.raises(DimensionMismatchError, match="preceding propagate"):
        fanout_graph.backpropagate(np.zeros((2, 6), dtype=np.float32))


@pytest.mark.unit
def test_backpropagate_rejects_batch_change(fanout_graph):
    fanout_graph.propagate(np.zeros((2, 3), dtype=np.float32))
    with pytest.raises(DimensionMismatchError, match="forward pass had 2"):
        fanout_graph.backpropagate(np.zeros((5, 6), dtype=np.float32))


@pytest.mark.unit
def test_backpropagate_rejects_bad_mask_length():
    graph = ComponentGraph.from_description(CONCAT_DESCRIPTION)
    graph.propagate([np.zeros((1, 3)), np.zeros((1, 3))])
    with pytest.raises(DimensionMismatchError, match="input_grad_mask"):
        graph.backpropagate([np.zeros((1, 6))], input_grad_mask=[True])


# ---------------------------------------------------------------------
# Parameters
# ---------------------------------------------------------------------
@pytest.mark.unit
def test_set_params_of_get_params_is_bit_identical(affine_graph):
    before = [n.get_params().copy() for n in affine_graph if n.is_updatable]
    affine_graph.set_params(affine_graph.get_params())
    after = [n.get_params() for n in affine_graph if n.is_updatable]
    for a, b in zip(before, after):
        assert a.tobytes() == b.tobytes()


@pytest.mark.unit
def test_num_params_matches_vector_length(affine_graph):
    assert affine_graph.num_params == (4 * 3 + 3) + (4 * 2 + 2) + (5 * 2 + 2)
    assert affine_graph.get_params().size == affine_graph.num_params
    assert affine_graph.get_gradient().size == affine_graph.num_params


@pytest.mark.unit
def test_set_params_rejects_wrong_length(affine_graph):
    with pytest.raises(DimensionMismatchError):
        affine_graph.set_params(np.zeros(affine_graph.num_params + 1))


@pytest.mark.unit
def test_params_follow_id_order(affine_graph):
    """The flat vector concatenates updatable components in id order."""
    parts = [n.get_params() for n in affine_graph if n.is_updatable]
    np.testing.assert_array_equal(affine_graph.get_params(), np.concatenate(parts))


@pytest.mark.unit
def test_set_train_options_reaches_components(affine_graph):
    opts = TrainOptions(learn_rate=0.5, momentum=0.9)
    affine_graph.set_train_options(opts)
    assert all(n.train_options == opts for n in affine_graph if n.is_updatable)


# ---------------------------------------------------------------------
# Numeric sanity
# ---------------------------------------------------------------------
@pytest.mark.unit
def test_check_detects_nan_parameters(affine_graph):
    params = affine_graph.get_params()
    params[0] = np.nan
    affine_graph.set_params(params)
    with pytest.raises(NumericInstabilityError):
        affine_graph.check()


@pytest.mark.unit
def test_backpropagate_detects_non_finite_update(simple_graph):
    x = random_matrix(2, 4)
    simple_graph.propagate(x)
    g = np.full((2, 2), np.inf, dtype=np.float32)
    with pytest.raises(NumericInstabilityError):
        simple_graph.backpropagate(g)


# ---------------------------------------------------------------------
# Structural mutation
# ---------------------------------------------------------------------
@pytest.mark.unit
def test_simple_append_replace_remove(ctx):
    graph = ComponentGraph.from_components([Sigmoid(3, 3)], ctx=ctx)
    graph.append_node(Tanh(3, 3))
    assert [type(n) for n in graph] == [InputLayer, Sigmoid, Tanh, OutputLayer]

    graph.replace_node(1, Identity(3, 3))
    assert isinstance(graph[1], Identity)

    graph.remove_node(2)
    assert [type(n) for n in graph] == [InputLayer, Identity, OutputLayer]
    assert [n.inputs for n in graph] == [[-1], [0], [1]]


@pytest.mark.unit
def test_simple_append_changing_output_dim(ctx):
    graph = ComponentGraph.from_components([Sigmoid(3, 3)], ctx=ctx)
    graph.append_node(AffineTransform(3, 7))
    assert graph.output_dim == 7
    assert graph.propagate(np.zeros((1, 3), dtype=np.float32)).shape == (1, 7)


@pytest.mark.unit
def test_simple_terminals_are_protected(ctx):
    graph = ComponentGraph.from_components([Sigmoid(3, 3)], ctx=ctx)
    with pytest.raises(StructuralInvariantError, match="terminal"):
        graph.remove_node(0)
    with pytest.raises(StructuralInvariantError, match="terminal"):
        graph.replace_node(2, Identity(3, 3))


@pytest.mark.unit
def test_simple_remove_last_body_node_fails(ctx):
    graph = ComponentGraph.from_components([Sigmoid(3, 3)], ctx=ctx)
    with pytest.raises(StructuralInvariantError, match="InputLayer"):
        graph.remove_node(1)


@pytest.mark.unit
def test_mutation_out_of_range_raises(fanout_graph):
    with pytest.raises(IndexError):
        fanout_graph.remove_node(42)


@pytest.mark.unit
def test_graph_append_wires_by_name():
    graph = _chain_graph(3)
    graph.append_node(OutputLayer(3, 3, name="y2", input_names=["n0"]))
    assert graph.terminals_out == [2, 3]
    out1, out2 = graph.propagate([np.ones((1, 3), dtype=np.float32)])
    np.testing.assert_array_equal(out1, out2)


@pytest.mark.unit
def test_graph_append_rejects_unknown_or_duplicate_name():
    graph = _chain_graph(3)
    with pytest.raises(ConfigError, match="unresolved"):
        graph.append_node(OutputLayer(3, 3, name="y2", input_names=["nope"]))
    with pytest.raises(ConfigError, match="Duplicate"):
        graph.append_node(OutputLayer(3, 3, name="y", input_names=["n0"]))


@pytest.mark.unit
def test_graph_replace_inherits_wiring():
    graph = _chain_graph(3, 3)
    graph.replace_node(2, Sigmoid(3, 3))
    assert isinstance(graph[2], Sigmoid)
    assert graph[2].inputs == [1]
    assert graph[2].name == "n1"


@pytest.mark.unit
def test_graph_replace_with_wider_node_fails_check():
    graph = _chain_graph(3, 3)
    with pytest.raises(StructuralInvariantError, match="exceeds"):
        graph.replace_node(1, AffineTransform(3, 8))


@pytest.mark.unit
def test_remove_node_with_surviving_reference_fails():
    """Removing a producer still referenced by a consumer is reported."""
    graph = _chain_graph(3, 3)
    with pytest.raises(StructuralInvariantError, match="removed"):
        graph.remove_node(1)
    with pytest.raises(StructuralInvariantError, match="removed"):
        graph.check()


@pytest.mark.unit
def test_remove_unreferenced_node_renumbers():
    graph = _chain_graph(3)
    graph.append_node(OutputLayer(3, 3, name="extra", input_names=["x"]))
    graph.remove_node(2)
    assert [n.name for n in graph] == ["x", "n0", "extra"]
    assert [n.id for n in graph] == [0, 1, 2]
    assert graph.terminals_out == [2]


@pytest.mark.unit
def test_append_graph_concatenates_chains(ctx):
    first = ComponentGraph.from_components([AffineTransform(4, 3)], ctx=ctx)
    second = ComponentGraph.from_components([Sigmoid(3, 3)], ctx=ctx)
    first.append_graph(second)
    assert [type(n) for n in first] == [InputLayer, AffineTransform, Sigmoid, OutputLayer]
    assert first[2] is not second[1]


@pytest.mark.unit
def test_append_graph_requires_simple(fanout_graph, simple_graph):
    with pytest.raises(StructuralInvariantError, match="simple chains"):
        simple_graph.append_graph(fanout_graph)


@pytest.mark.unit
def test_copy_is_independent(affine_graph):
    clone = affine_graph.copy()
    params = clone.get_params()
    clone.set_params(np.zeros_like(params))
    assert not np.array_equal(affine_graph.get_params(), clone.get_params())
    assert clone.structure is affine_graph.structure
    assert clone.terminals_in == affine_graph.terminals_in


# ---------------------------------------------------------------------
# Capabilities
# ---------------------------------------------------------------------
class RecordingIdentity(Identity):
    """Identity implementing every optional capability."""

    marker = "<RecordingIdentity>"

    def __init__(self, input_dim, output_dim, **kwargs):
        super().__init__(input_dim, output_dim, **kwargs)
        self.calls = []

    def reset_streams(self, stream_reset_flags):
        self.calls.append(("reset_streams", list(stream_reset_flags)))

    def set_seq_lengths(self, seq_lengths):
        self.calls.append(("set_seq_lengths", list(seq_lengths)))

    def set_chunk_size(self, chunk_size):
        self.calls.append(("set_chunk_size", chunk_size))

    def set_flags(self, flags):
        self.calls.append(("set_flags", list(flags)))


@pytest.mark.unit
def test_capability_calls_reach_only_capable_nodes(ctx):
    rec = RecordingIdentity(3, 3)
    graph = ComponentGraph.from_components([Sigmoid(3, 3), rec], ctx=ctx)

    graph.reset_streams([1, 0])
    graph.set_seq_lengths([5, 7])
    graph.set_chunk_size(16)
    graph.set_flags(np.array([1.0, 0.0]))

    assert rec.calls == [
        ("reset_streams", [1, 0]),
        ("set_seq_lengths", [5, 7]),
        ("set_chunk_size", 16),
        ("set_flags", [1.0, 0.0]),
    ]


@pytest.mark.unit
def test_set_dropout_retention_updates_and_logs(ctx, caplog):
    graph = ComponentGraph.from_components([Dropout(4, 4), Sigmoid(4, 4)], ctx=ctx)
    logger = logging.getLogger("nnetgraph.graph")
    logger.addHandler(caplog.handler)
    try:
        with caplog.at_level(logging.INFO, logger="nnetgraph.graph"):
            graph.set_dropout_retention(0.8)
    finally:
        logger.removeHandler(caplog.handler)

    assert graph[1].dropout_retention == pytest.approx(0.8)
    assert "from 0.5 to 0.8" in caplog.text


@pytest.mark.unit
def test_dropout_graph_backprop_uses_forward_mask():
    ctx = ComputeContext(seed=0)
    graph = ComponentGraph.from_components([Dropout(50, 50)], ctx=ctx)
    x = np.ones((4, 50), dtype=np.float32)
    out = graph.propagate(x)
    grad = graph.backpropagate(np.ones_like(x))
    np.testing.assert_array_equal(grad, out)
    np.testing.assert_array_equal(graph.feedforward(x), x)


# ---------------------------------------------------------------------
# Reports
# ---------------------------------------------------------------------
@pytest.mark.unit
def test_info_reports(affine_graph):
    x = random_matrix(2, 4)
    post = affine_graph.propagate(x)
    affine_graph.backpropagate(post)

    info = affine_graph.info()
    assert "num-components 8" in info
    assert "input-dim 4" in info
    assert "linearity" in info
    assert "linearity_grad" in affine_graph.info_gradient()
    assert "output of <Sigmoid>" in affine_graph.info_propagate()
    assert "diff-output of <AffineTransform>" in affine_graph.info_backpropagate()


@pytest.mark.unit
def test_to_dot_labels_edges_with_offsets(fanout_graph):
    dot = fanout_graph.to_dot()
    assert dot.startswith("digraph net{")
    assert "rankdir=BT" in dot
    joined = fanout_graph.index_of("joined")
    right = fanout_graph.index_of("right")
    assert f"{right} -> {joined} [label = 3; fontsize = 40]" in dot
    assert '[label = "joined"]' in dot


@pytest.mark.unit
def test_summary_box(fanout_graph):
    text = fanout_graph.summary()
    assert text.startswith("┌─ ComponentGraph")
    assert "structure : graph" in text


@pytest.mark.unit
def test_component_timings(fanout_graph):
    fanout_graph.propagate(np.zeros((2, 3), dtype=np.float32))
    fanout_graph.backpropagate(np.zeros((2, 6), dtype=np.float32))
    times = fanout_graph.component_times()
    assert len(times) == len(fanout_graph)
    assert all(fwd >= 0 and bwd >= 0 for _, _, fwd, bwd in times)

    table = fanout_graph.component_time_table()
    assert isinstance(table, Table)
    assert table.row_count == len(fanout_graph)

    fanout_graph.log_component_times()
    assert all(fwd == 0 and bwd == 0 for _, _, fwd, bwd in fanout_graph.component_times())
