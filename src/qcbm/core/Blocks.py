import copy
import math

import numpy as np
import torch

from qcbm.core.Errors import ConfigurationError, ParameterCountMismatchError, ShapeMismatchError

AXES = ("X", "Y", "Z")
STRATEGIES = ("roll", "kron")

PAULI = {
    "X": [[0, 1], [1, 0]],
    "Y": [[0, -1j], [1j, 0]],
    "Z": [[1, 0], [0, -1]],
}


def checkAxis(axis):
    axis = str(axis).upper()
    if axis not in AXES:
        raise ConfigurationError(f"unknown axis {axis!r}, expected one of {AXES}")
    return axis


##############################################
class Block:
    """Base of the operator tree.

    A block acts on `qubit_count` qubits. Primitive gates are local blocks of a
    single qubit; composite blocks hold sub-blocks returned by `blocks()`.
    """
    qubit_count = 1

    def blocks(self):
        return ()

    def label(self):
        return type(self).__name__

    def __repr__(self):
        return "\n".join(treeLines(self))


class PrimitiveBlock(Block):
    # `qubit` is used when the gate sits directly in a wider register or chain;
    # inside a layer or control block it must be 1 or agree with the placement
    def __init__(self, qubit=1):
        if qubit < 1:
            raise ShapeMismatchError(f"qubit index must be >= 1, got {qubit}")
        self.qubit = qubit

    def matrix(self) -> torch.Tensor:
        raise NotImplementedError


class PauliGate(PrimitiveBlock):
    def __init__(self, axis, qubit=1):
        super().__init__(qubit)
        self.axis = checkAxis(axis)

    def matrix(self):
        return torch.tensor(PAULI[self.axis], dtype=torch.complex128)

    def label(self):
        return self.axis


class RotationGate(PrimitiveBlock):
    """exp(-i * theta * sigma_axis / 2) on a single qubit."""

    def __init__(self, axis, theta=0.0, qubit=1):
        super().__init__(qubit)
        self.axis = checkAxis(axis)
        self.theta = float(theta)

    def matrix(self):
        c = math.cos(self.theta / 2)
        s = math.sin(self.theta / 2)
        if self.axis == "X":
            m = [[c, -1j * s], [-1j * s, c]]
        elif self.axis == "Y":
            m = [[c, -s], [s, c]]
        else:
            m = [[c - 1j * s, 0], [0, c + 1j * s]]
        return torch.tensor(m, dtype=torch.complex128)

    def label(self):
        return f"Rot({self.axis}, {self.theta:.4f})"


##############################################
class ChainBlock(Block):
    """Sub-blocks of the same size applied one after the other (first listed acts first)."""

    def __init__(self, qubit_count, blocks):
        blocks = tuple(blocks)
        for b in blocks:
            if not isinstance(b, Block):
                raise ShapeMismatchError(f"cannot chain {type(b).__name__}, build it with a qubit count first")
            if isinstance(b, PrimitiveBlock) and qubit_count > 1:
                # a bare gate in a wider chain acts on its own qubit
                if b.qubit > qubit_count:
                    raise ShapeMismatchError(f"gate on qubit {b.qubit} in a chain of {qubit_count} qubits")
            elif b.qubit_count != qubit_count or (isinstance(b, PrimitiveBlock) and b.qubit != 1):
                raise ShapeMismatchError(
                    f"chain of {qubit_count} qubits got a block of {span(b)} qubits")
        self.qubit_count = qubit_count
        self._blocks = blocks

    def blocks(self):
        return self._blocks

    def __len__(self):
        return len(self._blocks)

    def __getitem__(self, i):
        return self._blocks[i]

    def label(self):
        return f"chain({self.qubit_count})"


class LayerBlock(Block):
    """Single-qubit blocks placed side by side on a `qubit_count` register.

    "roll" contracts the state qubit by qubit, "kron" builds the tensor product
    of the local operators first and applies it once. Both give the same state.
    Qubits with no entry are left untouched.
    """

    def __init__(self, qubit_count, blocks, strategy="roll"):
        if strategy not in STRATEGIES:
            raise ConfigurationError(f"unknown layer strategy {strategy!r}, expected one of {STRATEGIES}")
        placed = []
        for q, b in sorted(dict(blocks).items()):
            if not 1 <= q <= qubit_count:
                raise ShapeMismatchError(f"qubit {q} outside a layer of {qubit_count} qubits")
            if not isinstance(b, Block) or b.qubit_count != 1:
                raise ShapeMismatchError(f"layer entry on qubit {q} must be a single-qubit block")
            if isinstance(b, PrimitiveBlock) and b.qubit not in (1, q):
                raise ShapeMismatchError(f"gate aimed at qubit {b.qubit} placed on qubit {q}")
            placed.append((q, b))
        self.qubit_count = qubit_count
        self.strategy = strategy
        self._placed = tuple(placed)

    def blocks(self):
        return tuple(b for _, b in self._placed)

    def items(self):
        return self._placed

    def label(self):
        return f"layer({self.qubit_count}, {self.strategy})"


class ControlBlock(Block):
    def __init__(self, qubit_count, controls, target, gate):
        controls = tuple(sorted(set(controls)))
        if target in controls:
            raise ConfigurationError(f"qubit {target} cannot control itself")
        for q in controls + (target,):
            if not 1 <= q <= qubit_count:
                raise ShapeMismatchError(f"qubit {q} outside a control block of {qubit_count} qubits")
        if not isinstance(gate, Block) or gate.qubit_count != 1:
            raise ShapeMismatchError("controlled gate must be a single-qubit block")
        if isinstance(gate, PrimitiveBlock) and gate.qubit not in (1, target):
            raise ShapeMismatchError(f"gate aimed at qubit {gate.qubit} controlled onto qubit {target}")
        self.qubit_count = qubit_count
        self.controls = controls
        self.target = target
        self.gate = gate

    def blocks(self):
        return (self.gate,)

    def label(self):
        return f"control({self.qubit_count}, {self.controls} -> {self.target})"


class CacheBlock(Block):
    """Memoizes the dense matrix of a parameter-free block.

    The wrapped block can not hold rotation gates, so the matrix stays valid for
    as long as the cache lives. `n_builds` counts how often it was computed.
    """

    def __init__(self, block):
        if not isinstance(block, Block):
            raise ShapeMismatchError("cache needs a built block, call build(n) on the template first")
        if any(True for _ in rotations(block)):
            raise ConfigurationError("only parameter-free blocks can be cached")
        self._block = block
        self._matrix = None
        self.n_builds = 0
        self.qubit_count = block.qubit_count

    @property
    def block(self):
        return self._block

    def blocks(self):
        return (self._block,)

    def matrix(self, build):
        # build(block) -> dense matrix, called once
        if self._matrix is None:
            self._matrix = build(self._block)
            self.n_builds += 1
        return self._matrix

    def label(self):
        return "cache"


##############################################
class BlockTemplate:
    """A block description that does not know its qubit count yet.

    `build(n)` returns a fresh concrete block, so one template can be built many
    times without the results sharing parameters.
    """

    def build(self, n):
        raise NotImplementedError

    def checkSize(self, n):
        if n is None:
            raise ShapeMismatchError(f"{type(self).__name__} needs a qubit count to be built")
        if n < 1:
            raise ShapeMismatchError(f"qubit count must be >= 1, got {n}")


class ChainTemplate(BlockTemplate):
    def __init__(self, blocks):
        self.blocks = tuple(blocks)

    def build(self, n):
        self.checkSize(n)
        return ChainBlock(n, [finalize(b, n) for b in self.blocks])


class LayerTemplate(BlockTemplate):
    def __init__(self, blocks=None, line=None, strategy="roll"):
        # either a {qubit: block} mapping or one `line` block copied onto every qubit
        self.blocks = dict(blocks or {})
        self.line = line
        self.strategy = strategy

    def build(self, n):
        self.checkSize(n)
        if self.line is not None:
            placed = {q: copy.deepcopy(self.line) for q in range(1, n + 1)}
        else:
            placed = {q: finalize(b, 1) for q, b in self.blocks.items()}
        return LayerBlock(n, placed, self.strategy)


class ControlTemplate(BlockTemplate):
    def __init__(self, controls, target, gate):
        self.controls = tuple(controls)
        self.target = target
        self.gate = gate

    def build(self, n):
        self.checkSize(n)
        return ControlBlock(n, self.controls, self.target, finalize(self.gate, 1))


def span(block):
    # qubits a block reaches: a bare gate reaches up to its own qubit
    if isinstance(block, PrimitiveBlock):
        return block.qubit
    return block.qubit_count


def finalize(block, n):
    if isinstance(block, BlockTemplate):
        return block.build(n)
    if isinstance(block, Block):
        return copy.deepcopy(block)
    raise ShapeMismatchError(f"not a block: {block!r}")


##############################################
def rotation(axis, theta=0.0, qubit=1):
    return RotationGate(axis, theta, qubit)


def Rx(theta=0.0):
    return RotationGate("X", theta)


def Ry(theta=0.0):
    return RotationGate("Y", theta)


def Rz(theta=0.0):
    return RotationGate("Z", theta)


def pauli(axis, qubit=1):
    return PauliGate(axis, qubit)


def chain(*blocks, qubit_count=None):
    if len(blocks) == 1 and not isinstance(blocks[0], (Block, BlockTemplate)):
        blocks = tuple(blocks[0])
    if qubit_count is None:
        sized = [b for b in blocks if isinstance(b, Block)]
        if not sized:
            return ChainTemplate(blocks)
        qubit_count = max(span(b) for b in sized)
    if all(isinstance(b, Block) for b in blocks):
        return ChainBlock(qubit_count, blocks)
    return ChainTemplate(blocks).build(qubit_count)


def layer(qubit_count, blocks, strategy="roll"):
    if strategy not in STRATEGIES:
        raise ConfigurationError(f"unknown layer strategy {strategy!r}, expected one of {STRATEGIES}")
    if qubit_count is None:
        return LayerTemplate(blocks=blocks, strategy=strategy)
    return LayerBlock(qubit_count, blocks, strategy)


def repeat(line, strategy="roll", qubit_count=None):
    """Copies of the single-qubit block `line` on every qubit."""
    if strategy not in STRATEGIES:
        raise ConfigurationError(f"unknown layer strategy {strategy!r}, expected one of {STRATEGIES}")
    template = LayerTemplate(line=finalize(line, 1), strategy=strategy)
    if qubit_count is None:
        return template
    return template.build(qubit_count)


def control(controls, target, gate, qubit_count=None):
    if isinstance(controls, int):
        controls = (controls,)
    template = ControlTemplate(controls, target, gate)
    if qubit_count is None:
        return template
    return template.build(qubit_count)


def cache(block):
    return CacheBlock(block)


##############################################
def rotations(block):
    """Rotation gates of the tree, depth first. This order indexes the parameter vector."""
    if isinstance(block, RotationGate):
        yield block
        return
    for sub in block.blocks():
        yield from rotations(sub)


def parameters(block):
    return torch.tensor([g.theta for g in rotations(block)], dtype=torch.float64)


def dispatch(block, params):
    gates = list(rotations(block))
    params = np.asarray(params, dtype=np.float64).reshape(-1)
    if len(params) != len(gates):
        raise ParameterCountMismatchError(len(gates), len(params))
    for g, theta in zip(gates, params):
        g.theta = float(theta)


def treeLines(block, depth=0):
    lines = ["  " * depth + block.label()]
    if isinstance(block, LayerBlock):
        for q, b in block.items():
            sub = treeLines(b, depth + 2)
            lines.append("  " * (depth + 1) + f"{q}=>")
            lines.extend(sub)
    else:
        for b in block.blocks():
            lines.extend(treeLines(b, depth + 1))
    return lines
