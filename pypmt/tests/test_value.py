import copy
import unittest

import numpy as np

from pypmt.codec import TypedBuffer, TypeTag, encode_map_header
from pypmt.errors import (
    CountMismatch,
    TypeMismatch,
    UninitializedValue,
    UnsupportedType,
    )
from pypmt.value import MapEntries, Value


class ValueStateTestCase(unittest.TestCase):

    def test_empty(self):
        value = Value()
        self.assertTrue(value.is_empty())
        self.assertFalse(value)
        self.assertRaises(UninitializedValue, value.data_type)
        self.assertRaises(UninitializedValue, lambda: value.buffer)
        self.assertEqual("Value()", repr(value))

    def test_wraps_buffer(self):
        buf = TypedBuffer.encode(TypeTag.SCALAR_INT16, 9)
        value = Value(buf)
        self.assertIs(buf, value.buffer)
        self.assertEqual(TypeTag.SCALAR_INT16, value.data_type())
        self.assertFalse(value.is_map())

    def test_wraps_empty_map_header(self):
        value = Value(TypedBuffer(encode_map_header(0)))
        self.assertTrue(value.is_map())
        self.assertEqual(TypeTag.MAP_HEADER_STRING, value.data_type())
        self.assertEqual(0, len(value))
        self.assertEqual(Value.map(), value)
        value["a"] = 1
        self.assertEqual(1, value.buffer.header_count())

    def test_wraps_map_header_without_entries(self):
        self.assertRaises(
            CountMismatch, Value, TypedBuffer(encode_map_header(2)))

    def test_wraps_none_buffer(self):
        value = Value(TypedBuffer.encode(TypeTag.NONE))
        self.assertEqual(TypeTag.NONE, value.data_type())
        self.assertFalse(value.is_map())

    def test_map_state(self):
        value = Value.map({"b": 2, "a": 1})
        self.assertTrue(value.is_map())
        self.assertEqual(TypeTag.MAP_HEADER_STRING, value.data_type())
        self.assertEqual(["a", "b"], list(value.keys()))
        self.assertEqual(2, value.buffer.header_count())

    def test_map_access_on_scalar(self):
        value = Value(1)
        self.assertRaises(TypeMismatch, lambda: value["a"])
        self.assertRaises(TypeMismatch, value.items)
        self.assertRaises(UninitializedValue, lambda: Value()["a"])


class FromNativeTestCase(unittest.TestCase):

    def test_python_numbers(self):
        self.assertEqual(TypeTag.SCALAR_INT64, Value.from_native(1).data_type())
        self.assertEqual(
            TypeTag.SCALAR_FLOAT64, Value.from_native(1.0).data_type())
        self.assertEqual(
            TypeTag.SCALAR_COMPLEX128, Value.from_native(1j).data_type())

    def test_numpy_scalars_keep_their_type(self):
        expected = [
            (np.float32(1.5), TypeTag.SCALAR_FLOAT32),
            (np.float64(1.5), TypeTag.SCALAR_FLOAT64),
            (np.complex64(1j), TypeTag.SCALAR_COMPLEX64),
            (np.int8(-3), TypeTag.SCALAR_INT8),
            (np.uint16(3), TypeTag.SCALAR_UINT16),
            (np.uint64(2 ** 64 - 1), TypeTag.SCALAR_UINT64),
            ]
        for (obj, tag) in expected:
            self.assertEqual(tag, Value.from_native(obj).data_type())

    def test_sequences(self):
        self.assertEqual(
            TypeTag.VECTOR_INT64, Value.from_native([1, 2, 3]).data_type())
        self.assertEqual(
            TypeTag.VECTOR_FLOAT64, Value.from_native((1.0, 2)).data_type())
        self.assertEqual(
            TypeTag.VECTOR_FLOAT64, Value.from_native([]).data_type())
        array = np.arange(4, dtype=np.uint8)
        self.assertEqual(
            TypeTag.VECTOR_UINT8, Value.from_native(array).data_type())

    def test_unsupported(self):
        unsupported = [
            True,
            np.bool_(False),
            "spam",
            None,
            object(),
            [True, False],
            ["a", "b"],
            [[1, 2], [3, 4]],
            np.float16(1.0),
            ]
        for obj in unsupported:
            self.assertRaises(UnsupportedType, Value.from_native, obj)

    def test_map_keys_must_be_strings(self):
        self.assertRaises(TypeError, Value.from_native, {1: 2})

    def test_explicit_element(self):
        value = Value.vector([1, 2, 3], "int32")
        self.assertEqual(TypeTag.VECTOR_INT32, value.data_type())
        value = Value.scalar(7, np.uint8)
        self.assertEqual(TypeTag.SCALAR_UINT8, value.data_type())
        self.assertRaises(ValueError, Value.scalar, 256, "uint8")

    def test_nested_map(self):
        value = Value.from_native({"a": {"b": {"c": [1.5]}}})
        self.assertTrue(value["a"]["b"].is_map())
        self.assertEqual(
            TypeTag.VECTOR_FLOAT64, value["a"]["b"]["c"].data_type())


class AliasingTestCase(unittest.TestCase):

    def test_copies_share_buffers(self):
        value = Value([1, 2, 3])
        for other in (value.copy(), copy.copy(value), Value(value)):
            self.assertIs(value.buffer, other.buffer)

    def test_map_mutation_is_shared(self):
        """Test that a map mutated through one handle changes for every
        handle sharing it."""
        value = Value.map()
        alias = value.copy()
        value["x"] = 1.0
        self.assertEqual(["x"], list(alias.keys()))
        del alias["x"]
        self.assertEqual(0, len(value))

    def test_child_values_are_shared(self):
        child = Value.map()
        parent = Value.map({"child": child})
        child["leaf"] = 1
        self.assertIn("leaf", parent["child"])


class MapEntriesTestCase(unittest.TestCase):

    def test_header_follows_entries(self):
        entries = MapEntries()
        self.assertEqual(0, entries.header().header_count())
        entries["a"] = 1
        entries["b"] = 2
        self.assertEqual(2, entries.header().header_count())
        entries["a"] = 3
        self.assertEqual(2, entries.header().header_count())
        del entries["b"]
        self.assertEqual(1, entries.header().header_count())

    def test_sorted_iteration(self):
        entries = MapEntries([("z", 1), ("a", 2), ("m", 3)])
        self.assertEqual(["a", "m", "z"], list(entries))

    def test_children_are_values(self):
        entries = MapEntries({"a": 1})
        self.assertIsInstance(entries["a"], Value)

    def test_rejects_empty_values(self):
        value = Value.map()
        self.assertRaises(UninitializedValue, value.__setitem__, "a", Value())
        self.assertNotIn("a", value)
        self.assertEqual(0, value.buffer.header_count())
        self.assertRaises(UninitializedValue, MapEntries, {"a": Value()})


class EqualityTestCase(unittest.TestCase):

    def test_structural_equality(self):
        self.assertEqual(Value([1, 2]), Value([1, 2]))
        self.assertNotEqual(Value([1, 2]), Value.vector([1, 2], "int32"))
        self.assertEqual(Value({"a": [1.0]}), Value({"a": [1.0]}))
        self.assertNotEqual(Value({"a": 1}), Value({"a": 2}))
        self.assertNotEqual(Value({"a": 1}), Value(1))
        self.assertEqual(Value(), Value())
        self.assertNotEqual(Value(), Value(1))

    def test_not_comparable_with_natives(self):
        self.assertFalse(Value(1) == 1)

    def test_unhashable(self):
        self.assertRaises(TypeError, hash, Value(1))


if __name__ == "__main__":
    unittest.main()
