import sys
import os
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

import math
import unittest

import torch

from qcbm.core.Blocks import (CacheBlock, ChainBlock, LayerBlock, LayerTemplate, RotationGate, Rx, Ry, Rz,
                              cache, chain, control, dispatch, layer, parameters, pauli, repeat, rotation,
                              rotations)
from qcbm.core.Errors import ConfigurationError, ParameterCountMismatchError, ShapeMismatchError


class TestConstruction(unittest.TestCase):

    def test_rotation_shorthands(self):
        gate = rotation("x", 0.5)
        self.assertIsInstance(gate, RotationGate)
        self.assertEqual(gate.axis, "X")
        self.assertEqual(gate.theta, 0.5)
        self.assertEqual(Ry(1.0).axis, "Y")

    def test_unknown_axis(self):
        with self.assertRaises(ConfigurationError):
            rotation("W", 0.0)

    def test_chain_infers_qubit_count(self):
        c = chain(Rx(), Rz())
        self.assertIsInstance(c, ChainBlock)
        self.assertEqual(c.qubit_count, 1)
        self.assertEqual(len(c), 2)

    def test_chain_of_mismatched_sizes_fails(self):
        with self.assertRaises(ShapeMismatchError):
            chain(repeat(Rx(), qubit_count=2), repeat(Rx(), qubit_count=3))

    def test_chain_finalizes_templates(self):
        c = chain(repeat(Rx()), repeat(Ry()), qubit_count=4)
        self.assertEqual(c.qubit_count, 4)
        self.assertTrue(all(isinstance(b, LayerBlock) and b.qubit_count == 4 for b in c.blocks()))

    def test_template_without_qubit_count_fails(self):
        template = repeat(Rx())
        self.assertIsInstance(template, LayerTemplate)
        with self.assertRaises(ShapeMismatchError):
            template.build(None)

    def test_layer_entry_outside_register_fails(self):
        template = layer(None, {3: Rx()})
        with self.assertRaises(ShapeMismatchError):
            template.build(2)
        self.assertEqual(template.build(3).qubit_count, 3)

    def test_layer_entries_must_be_single_qubit(self):
        with self.assertRaises(ShapeMismatchError):
            layer(3, {1: repeat(Rx(), qubit_count=2)})

    def test_unknown_strategy(self):
        with self.assertRaises(ConfigurationError):
            layer(2, {1: Rx()}, strategy="sparse")

    def test_repeat_builds_independent_copies(self):
        template = repeat(chain(Rx(), Rz()))
        a = template.build(2)
        b = template.build(2)
        dispatch(a, [1.0, 2.0, 3.0, 4.0])
        self.assertEqual(parameters(b).tolist(), [0.0, 0.0, 0.0, 0.0])
        self.assertIsNot(a.blocks()[0], a.blocks()[1])

    def test_control_of_itself_fails(self):
        with self.assertRaises(ConfigurationError):
            control(2, 2, pauli("X"), qubit_count=3)

    def test_control_outside_register_fails(self):
        with self.assertRaises(ShapeMismatchError):
            control(4, 1, pauli("X"), qubit_count=3)


class TestPlacement(unittest.TestCase):

    def test_layer_rejects_gate_aimed_elsewhere(self):
        with self.assertRaises(ShapeMismatchError):
            layer(2, {1: rotation("X", math.pi, qubit=2)})
        placed = layer(2, {2: rotation("X", math.pi, qubit=2)})
        self.assertEqual([q for q, _ in placed.items()], [2])

    def test_control_rejects_gate_aimed_elsewhere(self):
        with self.assertRaises(ShapeMismatchError):
            control(1, 2, pauli("X", qubit=3), qubit_count=3)

    def test_chain_spans_gate_qubits(self):
        c = chain(rotation("X", math.pi, qubit=1), rotation("X", math.pi, qubit=2))
        self.assertEqual(c.qubit_count, 2)
        with self.assertRaises(ShapeMismatchError):
            chain(rotation("X", 0.0, qubit=3), qubit_count=2)

    def test_single_qubit_chain_keeps_gates_on_qubit_one(self):
        with self.assertRaises(ShapeMismatchError):
            ChainBlock(1, [rotation("X", 0.0, qubit=2)])


class TestCache(unittest.TestCase):

    def test_parameterized_block_cannot_be_cached(self):
        with self.assertRaises(ConfigurationError):
            cache(repeat(Rx(), qubit_count=2))

    def test_template_cannot_be_cached(self):
        with self.assertRaises(ShapeMismatchError):
            cache(chain(control(1, 2, pauli("X"))))

    def test_cache_of_entangler(self):
        ent = chain(control(1, 2, pauli("X")), control(2, 1, pauli("X")), qubit_count=2)
        c = cache(ent)
        self.assertIsInstance(c, CacheBlock)
        self.assertEqual(c.qubit_count, 2)
        self.assertEqual(c.n_builds, 0)
        self.assertEqual(list(rotations(c)), [])


class TestParameters(unittest.TestCase):

    def test_layer_order_follows_qubits(self):
        block = layer(3, {3: Rx(0.3), 1: Rz(0.1), 2: Ry(0.2)})
        self.assertEqual(parameters(block).tolist(), [0.1, 0.2, 0.3])

    def test_nested_traversal_is_depth_first(self):
        block = chain(
            repeat(chain(Rx(), Rz()), qubit_count=2),
            repeat(chain(Rz(), Rx(), Rz()), qubit_count=2),
        )
        dispatch(block, range(10))
        first = block[0].items()
        self.assertEqual([g.theta for g in first[0][1].blocks()], [0.0, 1.0])
        self.assertEqual([g.theta for g in first[1][1].blocks()], [2.0, 3.0])
        second = block[1].items()
        self.assertEqual([g.theta for g in second[1][1].blocks()], [7.0, 8.0, 9.0])

    def test_dispatch_with_wrong_length(self):
        block = repeat(Rx(), qubit_count=3)
        with self.assertRaises(ParameterCountMismatchError) as ctx:
            dispatch(block, [0.0, 1.0])
        self.assertEqual(ctx.exception.expected, 3)
        self.assertEqual(ctx.exception.got, 2)

    def test_dispatch_scalar_counts_as_one_parameter(self):
        block = repeat(Rx(), qubit_count=2)
        with self.assertRaises(ParameterCountMismatchError):
            dispatch(block, 0.5)
        single = chain(Rx())
        dispatch(single, torch.tensor(0.5))
        self.assertEqual(parameters(single).tolist(), [0.5])

    def test_repr_lists_gates(self):
        text = repr(chain(Rx(math.pi), Rz()))
        self.assertIn("chain(1)", text)
        self.assertIn("Rot(X, 3.1416)", text)


if __name__ == "__main__":
    unittest.main()
