"""Shared fixtures and utilities for unit tests."""

import numpy as np
import pytest

from nnetgraph import ComponentGraph, ComputeContext

FANOUT_DESCRIPTION = """
<NnetProto>
<StructureType> graph
<InputLayer> <InputDim> 3 <Name> x
<Identity> <InputDim> 3 <Name> left <Input> x
<Identity> <InputDim> 3 <Name> right <Input> x
<Identity> <InputDim> 6 <Name> joined <Input> left,right <Offset> 0,3
<OutputLayer> <InputDim> 6 <Name> y <Input> joined
</NnetProto>
"""

AFFINE_GRAPH_DESCRIPTION = """
<StructureType> graph
<InputLayer> <InputDim> 4 <Name> x
<AffineTransform> <InputDim> 4 <OutputDim> 3 <Name> h1 <Input> x <ParamStddev> 0.5 <BiasMean> 0 <BiasRange> 1
<AffineTransform> <InputDim> 4 <OutputDim> 2 <Name> h2 <Input> x <Xavier> 1
<Sigmoid> <InputDim> 3 <Name> s1 <Input> h1
<Tanh> <InputDim> 2 <Name> t2 <Input> h2
<AffineTransform> <InputDim> 5 <OutputDim> 2 <Name> top <Input> s1,t2
<Softmax> <InputDim> 2 <Name> sm <Input> top
<OutputLayer> <InputDim> 2 <Name> y <Input> sm
"""

SIMPLE_DESCRIPTION = """
<AffineTransform> <InputDim> 4 <OutputDim> 3 <ParamStddev> 0.2 <BiasMean> 0 <BiasRange> 0.5
<ReLU> <InputDim> 3
<AffineTransform> <InputDim> 3 <OutputDim> 2
<Softmax> <InputDim> 2
"""


@pytest.fixture
def ctx():
    """Seeded float32 context so parameter init is reproducible."""
    return ComputeContext(seed=13)


@pytest.fixture
def fanout_graph(ctx):
    """x(3) feeding two identities concatenated into a 6-wide identity."""
    return ComponentGraph.from_description(FANOUT_DESCRIPTION, ctx)


@pytest.fixture
def affine_graph(ctx):
    """Two affine branches merged by a third affine layer."""
    return ComponentGraph.from_description(AFFINE_GRAPH_DESCRIPTION, ctx)


@pytest.fixture
def simple_graph(ctx):
    """Feed-forward chain described without explicit terminals."""
    return ComponentGraph.from_description(SIMPLE_DESCRIPTION, ctx)


def random_matrix(rows: int, cols: int, seed: int = 0) -> np.ndarray:
    """Return a reproducible float32 matrix."""
    return np.random.default_rng(seed).standard_normal((rows, cols)).astype(np.float32)
