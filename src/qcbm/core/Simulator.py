import math

import torch

from qcbm.core.Blocks import CacheBlock, ChainBlock, ControlBlock, LayerBlock, PrimitiveBlock
from qcbm.core.Errors import NumericalError, ShapeMismatchError

NORM_TOLERANCE = 1e-6


class Register:
    """State vector of n qubits. Qubit 1 is the least significant bit of the basis index."""

    def __init__(self, state):
        state = torch.as_tensor(state, dtype=torch.complex128).flatten()
        n = state.numel().bit_length() - 1
        if n < 1 or (1 << n) != state.numel():
            raise ShapeMismatchError(f"state of length {state.numel()} is not a qubit register")
        self.n_qubits = n
        self.state = state

    def statevec(self) -> torch.Tensor:
        return self.state

    def norm(self):
        return torch.linalg.vector_norm(self.state).item()

    def probs(self) -> torch.Tensor:
        p = self.state.abs() ** 2
        if not torch.isfinite(p).all():
            raise NumericalError("probability vector contains NaN or Inf")
        return p


def zeroState(n):
    if n < 1:
        raise ShapeMismatchError(f"register needs at least one qubit, got {n}")
    state = torch.zeros(1 << n, dtype=torch.complex128)
    state[0] = 1.0
    return Register(state)


##############################################
def apply(register, block):
    """Returns a new register holding `block` applied to `register`; the input is left as is."""
    n = register.n_qubits
    state = register.state[:, None]
    if isinstance(block, PrimitiveBlock):
        if block.qubit > n:
            raise ShapeMismatchError(f"gate on qubit {block.qubit} applied to a {n}-qubit register")
        out = applyLocal(state, block.matrix(), block.qubit, n)
    else:
        if block.qubit_count != n:
            raise ShapeMismatchError(f"{block.qubit_count}-qubit block applied to a {n}-qubit register")
        out = applyBlock(state, block, n)

    out = Register(out[:, 0])
    norm = out.norm()
    if not math.isfinite(norm) or abs(norm - 1.0) > NORM_TOLERANCE:
        raise NumericalError(f"state norm drifted to {norm}")
    return out


def applyBlock(state, block, n):
    # state has shape (2**n, batch); every column is transformed the same way
    if isinstance(block, PrimitiveBlock):
        return applyOn(state, block, block.qubit, n)
    if isinstance(block, ChainBlock):
        for b in block.blocks():
            state = applyBlock(state, b, n)
        return state
    if isinstance(block, LayerBlock):
        if block.strategy == "kron":
            return applyKron(state, block, n)
        for q, b in block.items():
            state = applyOn(state, b, q, n)
        return state
    if isinstance(block, ControlBlock):
        moved = applyOn(state, block.gate, block.target, n)
        mask = controlMask(block.controls, n)
        return torch.where(mask[:, None], moved, state)
    if isinstance(block, CacheBlock):
        matrix = block.matrix(lambda b: denseMatrix(b, n))
        return matrix @ state
    raise TypeError(f"cannot simulate {type(block).__name__}")


def applyOn(state, block, qubit, n):
    """Applies the single-qubit `block` to `qubit` of an n-qubit state, one gate at a time."""
    if isinstance(block, PrimitiveBlock):
        return applyLocal(state, block.matrix(), qubit, n)
    if isinstance(block, ChainBlock):
        for b in block.blocks():
            state = applyOn(state, b, qubit, n)
        return state
    return applyLocal(state, localMatrix(block), qubit, n)


def applyLocal(state, matrix, qubit, n):
    view = state.reshape(1 << (n - qubit), 2, 1 << (qubit - 1), -1)
    return torch.einsum("ij,ajbk->aibk", matrix, view).reshape(state.shape)


def applyKron(state, layer, n):
    ops = [torch.eye(2, dtype=torch.complex128) for _ in range(n)]
    for q, b in layer.items():
        ops[q - 1] = localMatrix(b)
    # highest qubit is the leftmost factor
    full = ops[n - 1]
    for q in range(n - 1, 0, -1):
        full = torch.kron(full, ops[q - 1])
    return full @ state


def controlMask(controls, n):
    idx = torch.arange(1 << n)
    mask = torch.ones(1 << n, dtype=torch.bool)
    for c in controls:
        mask &= ((idx >> (c - 1)) & 1).bool()
    return mask


##############################################
def localMatrix(block):
    if isinstance(block, PrimitiveBlock):
        return block.matrix()
    return denseMatrix(block, 1)


def denseMatrix(block, n):
    """Full 2**n x 2**n operator of `block`, column j being the image of basis state j."""
    return applyBlock(torch.eye(1 << n, dtype=torch.complex128), block, n)
