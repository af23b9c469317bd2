from enum import Enum

import pennylane as qml
import torch

from qcbm.core.Blocks import (CacheBlock, ChainBlock, ControlBlock, LayerBlock, PauliGate, PrimitiveBlock,
                              RotationGate, Rx, Rz, cache, chain, control, dispatch, parameters, pauli, repeat, rotations)
from qcbm.core.Errors import ConfigurationError
from qcbm.core.Simulator import apply, zeroState


class LayerKind(Enum):
    FIRST = "first"
    MID = "mid"
    LAST = "last"


def rotationLayer(kind, strategy="roll"):
    # the input is |0...0>, so the first layer can skip its leading Rz and the last its trailing one
    if kind is LayerKind.FIRST:
        line = chain(Rx(), Rz())
    elif kind is LayerKind.MID:
        line = chain(Rz(), Rx(), Rz())
    elif kind is LayerKind.LAST:
        line = chain(Rz(), Rx())
    else:
        raise ConfigurationError(f"unknown layer kind {kind!r}")
    return repeat(line, strategy)


def entangler(pairs):
    return chain(control(ctrl, target, pauli("X")) for ctrl, target in pairs)


def checkPairs(n_qubits, pairs):
    checked = []
    for pair in pairs:
        if len(pair) != 2:
            raise ConfigurationError(f"entangler pair {pair!r} must be (control, target)")
        ctrl, target = pair
        for q in (ctrl, target):
            if not 1 <= q <= n_qubits:
                raise ConfigurationError(f"entangler pair {tuple(pair)} uses qubit {q} outside [1, {n_qubits}]")
        if ctrl == target:
            raise ConfigurationError(f"entangler pair {tuple(pair)} controls its own target")
        checked.append((int(ctrl), int(target)))
    return checked


class QCBM:
    """Quantum circuit Born machine.

    Layout: first rotation layer, then (nlayer - 1) times an entangler followed
    by a mid rotation layer, then a last entangler and the last rotation layer.
    The entangler is parameter-free and cached; all its slots share one cache.
    Parameters are indexed first layer qubits 1..n, then every mid layer, then
    the last layer.
    """

    def __init__(self, n_qubits, nlayer, pairs, strategy="roll"):
        if n_qubits < 1:
            raise ConfigurationError(f"need at least one qubit, got {n_qubits}")
        if nlayer < 1:
            raise ConfigurationError(f"need at least one layer, got {nlayer}")
        self.n_qubits = n_qubits
        self.nlayer = nlayer
        self.pairs = checkPairs(n_qubits, pairs)

        ent = cache(entangler(self.pairs).build(n_qubits))
        blocks = [rotationLayer(LayerKind.FIRST, strategy).build(n_qubits)]
        for _ in range(nlayer - 1):
            blocks.append(ent)
            blocks.append(rotationLayer(LayerKind.MID, strategy).build(n_qubits))
        blocks.append(ent)
        blocks.append(rotationLayer(LayerKind.LAST, strategy).build(n_qubits))
        self.circuit = ChainBlock(n_qubits, blocks)
        self.n_parameters = sum(1 for _ in rotations(self.circuit))

    def parameters(self) -> torch.Tensor:
        return parameters(self.circuit)

    def dispatch(self, params):
        dispatch(self.circuit, params)

    def probs(self) -> torch.Tensor:
        return apply(zeroState(self.n_qubits), self.circuit).probs()

    def mmd_loss(self, mmd, prior):
        px = self.probs()
        loss = mmd(px, prior)
        return loss, px

    def __repr__(self):
        return f"QCBM(n_qubits={self.n_qubits}, nlayer={self.nlayer})\n{self.circuit!r}"


##############################################
ROTATIONS = {"X": qml.RX, "Y": qml.RY, "Z": qml.RZ}
PAULIS = {"X": qml.PauliX, "Y": qml.PauliY, "Z": qml.PauliZ}


def emitGates(block, weights, qubit, n):
    # qubit q sits on wire n - q so that qml.probs orders outcomes like the native engine
    if isinstance(block, RotationGate):
        ROTATIONS[block.axis](next(weights), wires=n - qubit)
    elif isinstance(block, PauliGate):
        PAULIS[block.axis](wires=n - qubit)
    elif isinstance(block, LayerBlock):
        for q, b in block.items():
            emitGates(b, weights, q, n)
    elif isinstance(block, ControlBlock):
        qml.ctrl(emitGates, control=[n - c for c in block.controls])(block.gate, weights, block.target, n)
    elif isinstance(block, CacheBlock):
        emitGates(block.block, weights, qubit, n)
    elif isinstance(block, ChainBlock):
        for b in block.blocks():
            if isinstance(b, PrimitiveBlock) and block.qubit_count > 1:
                emitGates(b, weights, b.qubit, n)
            else:
                emitGates(b, weights, qubit, n)
    else:
        raise TypeError(f"cannot export {type(block).__name__}")


def toQNode(qcbm, device="default.qubit"):
    """PennyLane qnode of the same circuit, taking the parameter vector and returning probabilities."""
    n = qcbm.n_qubits
    qml_device = qml.device(device, wires=n)

    @qml.qnode(qml_device, interface="torch", diff_method="parameter-shift")
    def circuit(weights):
        emitGates(qcbm.circuit, iter(weights), 1, n)
        return qml.probs(wires=list(range(n)))

    return circuit
