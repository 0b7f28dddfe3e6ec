from __future__ import annotations

import unittest

import jax.numpy as jnp

from floatscript import InterpreterConfig, execute
from floatscript.environment import Diagnostic, DiagnosticKind, Environment, is_valid_name, split_array_key


class NameRuleTests(unittest.TestCase):
    def test_scalar_names(self) -> None:
        for name in ("x", "foo_bar", "_y1", "2x", "X9"):
            with self.subTest(name=name):
                self.assertTrue(is_valid_name(name))
        for name in ("", "9", "_", "a$1", "a.b", "life", "Sine", "xwhile", "Logx", "Sqrt2"):
            with self.subTest(name=name):
                self.assertFalse(is_valid_name(name))

    def test_array_element_names(self) -> None:
        self.assertTrue(is_valid_name("A$3", array_element=True))
        self.assertFalse(is_valid_name("$3", array_element=True))
        self.assertFalse(is_valid_name("A$-1", array_element=True))

    def test_split_array_key(self) -> None:
        self.assertEqual(split_array_key("A$3"), ("A", 3))
        self.assertEqual(split_array_key("data$12"), ("data", 12))
        self.assertIsNone(split_array_key("A"))
        self.assertIsNone(split_array_key("$3"))
        self.assertIsNone(split_array_key("A$x"))
        self.assertIsNone(split_array_key("A$-1"))


class ScalarStoreTests(unittest.TestCase):
    def test_builtin_constants_are_preloaded(self) -> None:
        env = Environment()
        self.assertAlmostEqual(float(env["pi"]), 3.14159, places=5)
        self.assertAlmostEqual(float(env["e"]), 2.71828, places=5)
        self.assertNotIn("pi", Environment(builtins=False))

    def test_builtins_can_be_overwritten(self) -> None:
        env = Environment()
        env.set("pi", 3)
        self.assertEqual(float(env["pi"]), 3.0)
        self.assertEqual(env.diagnostics[-1].kind, DiagnosticKind.UPDATED)

    def test_values_are_stored_in_single_precision(self) -> None:
        env = Environment(builtins=False)
        env.set("x", 0.1)
        self.assertEqual(env["x"].dtype, jnp.float32)
        self.assertEqual(env["x"].shape, ())
        self.assertEqual(float(env["x"]), float(jnp.float32(0.1)))
        self.assertNotEqual(float(env["x"]), 0.1)

    def test_create_then_update_diagnostics(self) -> None:
        env = Environment(builtins=False)
        self.assertTrue(env.set("x", 1))
        self.assertTrue(env.set("x", 2.5))
        self.assertEqual(
            list(env.diagnostics),
            [
                Diagnostic(kind=DiagnosticKind.CREATED, name="x", value=1.0, message="Added new variable x with value 1"),
                Diagnostic(kind=DiagnosticKind.UPDATED, name="x", value=2.5, message="Updated variable x with value 2.5"),
            ],
        )

    def test_invalid_names_are_rejected_and_store_is_unchanged(self) -> None:
        env = Environment(builtins=False)
        for name in ("if_x", "9", "a.b", "Sqrtx"):
            with self.subTest(name=name):
                self.assertFalse(env.set(name, 1))
                self.assertNotIn(name, env)
                self.assertEqual(env.diagnostics[-1].kind, DiagnosticKind.NAMING_ERROR)
        self.assertEqual(len(env), 0)
        self.assertIn("reserved keyword 'if'", env.diagnostics[0].message)

    def test_undefined_read_yields_zero_with_diagnostic(self) -> None:
        env = Environment(builtins=False)
        value = env.get("y")
        self.assertEqual(float(value), 0.0)
        self.assertEqual(value.dtype, jnp.float32)
        self.assertNotIn("y", env)
        self.assertEqual(
            list(env.diagnostics),
            [Diagnostic(kind=DiagnosticKind.UNDEFINED_REFERENCE, name="y", value=None, message="Variable y is not defined; using 0")],
        )

    def test_get_with_default_follows_mapping_contract(self) -> None:
        env = Environment({"x": 2.0}, builtins=False)
        self.assertEqual(env.get("missing", 1.0), 1.0)
        self.assertIsNone(env.get("missing", None))
        self.assertEqual(float(env.get("x", 1.0)), 2.0)
        self.assertEqual([d.kind for d in env.diagnostics], [DiagnosticKind.CREATED])

    def test_mapping_lookup_does_not_report(self) -> None:
        env = Environment(builtins=False)
        with self.assertRaises(KeyError):
            env["missing"]
        self.assertEqual(list(env.diagnostics), [])

    def test_host_value_types(self) -> None:
        env = Environment(builtins=False)
        env.set("n", jnp.asarray(3))
        self.assertEqual(env["n"].dtype, jnp.float32)
        env.set("inf", float("inf"))
        self.assertEqual(float(env["inf"]), float("inf"))
        for bad in ("1", True, 1 + 2j, jnp.ones((2,)), None):
            with self.subTest(value=bad):
                with self.assertRaises(TypeError):
                    env.set("bad", bad)
        self.assertNotIn("bad", env)

    def test_diagnostics_are_logged(self) -> None:
        env = Environment(builtins=False)
        with self.assertLogs("floatscript.environment", level="INFO") as logs:
            env.set("x", 4)
            env.set("else1", 4)
            env.get("z")
        self.assertEqual(
            logs.output,
            [
                "INFO:floatscript.environment:Added new variable x with value 4",
                "WARNING:floatscript.environment:Name 'else1' contains reserved keyword 'else'; assignment ignored",
                "WARNING:floatscript.environment:Variable z is not defined; using 0",
            ],
        )

    def test_diagnostic_callback(self) -> None:
        seen: list[Diagnostic] = []
        env = Environment(builtins=False, on_diagnostic=seen.append)
        env.set("x", 1)
        env.get("q")
        self.assertEqual([d.kind for d in seen], [DiagnosticKind.CREATED, DiagnosticKind.UNDEFINED_REFERENCE])
        self.assertEqual(seen, list(env.diagnostics))


class ArrayStoreTests(unittest.TestCase):
    def test_load_and_read_elements(self) -> None:
        env = Environment(builtins=False)
        env.load_array("A", [1.0, 2.0, 3.0])
        self.assertEqual(float(env.get_array_element("A", 1)), 2.0)
        self.assertEqual(float(env["A$2"]), 3.0)
        self.assertEqual(env.array_names(), ["A"])
        self.assertEqual(len(env), 3)

    def test_out_of_range_element_is_undefined(self) -> None:
        env = Environment(builtins=False)
        env.load_array("A", [1.0, 2.0, 3.0])
        self.assertEqual(float(env.get_array_element("A", 5)), 0.0)
        last = env.diagnostics[-1]
        self.assertEqual(last.kind, DiagnosticKind.UNDEFINED_REFERENCE)
        self.assertEqual(last.name, "A$5")

    def test_negative_index_is_rejected(self) -> None:
        env = Environment(builtins=False)
        self.assertFalse(env.set_array_element("A", -1, 7))
        self.assertEqual(env.diagnostics[-1].kind, DiagnosticKind.NAMING_ERROR)
        self.assertEqual(float(env.get_array_element("A", -1)), 0.0)
        self.assertEqual(env.diagnostics[-1].kind, DiagnosticKind.UNDEFINED_REFERENCE)

    def test_flat_keys_route_to_array_elements(self) -> None:
        env = Environment(builtins=False)
        self.assertTrue(env.set("B$2", 5, is_array_element=True))
        self.assertTrue(env.set_array_element("B", 0, 1))
        self.assertEqual(env.array_names(), ["B"])
        self.assertIn("B$2", env)
        self.assertEqual(float(env.get("B$2")), 5.0)
        self.assertFalse(env.set("B$x", 1, is_array_element=True))

    def test_fetch_fills_gaps_with_zero(self) -> None:
        env = Environment(builtins=False)
        env.set_array_element("S", 3, 4.5)
        env.set_array_element("S", 0, 1)
        fetched = env.fetch_array("S")
        self.assertEqual(fetched.dtype, jnp.float32)
        self.assertEqual(fetched.tolist(), [1.0, 0.0, 0.0, 4.5])

    def test_index_above_limit_is_rejected(self) -> None:
        env = Environment(builtins=False, max_array_index=8)
        self.assertTrue(env.set_array_element("A", 8, 1))
        self.assertFalse(env.set_array_element("A", 9, 1))
        self.assertEqual(
            env.diagnostics[-1].message,
            "Name 'A$9' has an index above the limit of 8; assignment ignored",
        )
        self.assertEqual(env.fetch_array("A").shape, (9,))

    def test_fetch_unknown_array(self) -> None:
        env = Environment(builtins=False)
        fetched = env.fetch_array("Nope")
        self.assertEqual(fetched.shape, (0,))
        self.assertEqual(env.diagnostics[-1].message, "Array Nope is not defined; using []")

    def test_load_rejects_non_vectors(self) -> None:
        env = Environment(builtins=False)
        with self.assertRaises(TypeError):
            env.load_array("M", [[1.0, 2.0], [3.0, 4.0]])
        with self.assertRaises(TypeError):
            env.load_array("M", 1.0)
        self.assertEqual(env.array_names(), [])

    def test_reload_updates_existing_elements(self) -> None:
        env = Environment(builtins=False)
        env.load_array("A", [1.0, 2.0])
        env.load_array("A", [9.0])
        self.assertEqual(env.fetch_array("A").tolist(), [9.0, 2.0])
        self.assertEqual(env.diagnostics[-1].kind, DiagnosticKind.UPDATED)


class DiagnosticRetentionTests(unittest.TestCase):
    LOOP = "i=0; while(i<500){i=i+1}"

    def test_retention_can_be_switched_off(self) -> None:
        seen: list[Diagnostic] = []
        env = Environment(keep_diagnostics=0, on_diagnostic=seen.append)
        execute(self.LOOP, env, config=InterpreterConfig())
        self.assertEqual(float(env["i"]), 500.0)
        self.assertEqual(len(env.diagnostics), 0)
        self.assertEqual(len(seen), 503)

    def test_only_newest_records_are_kept(self) -> None:
        env = Environment(keep_diagnostics=10)
        execute(self.LOOP, env, config=InterpreterConfig())
        self.assertEqual(len(env.diagnostics), 10)
        self.assertEqual(env.diagnostics[-1].message, "Updated variable i with value 500")

    def test_default_retention_is_bounded(self) -> None:
        env = Environment()
        self.assertIsNotNone(env.diagnostics.maxlen)
        for _ in range(env.diagnostics.maxlen + 5):
            env.get("nothing")
        self.assertEqual(len(env.diagnostics), env.diagnostics.maxlen)

    def test_unbounded_retention_on_request(self) -> None:
        env = Environment(keep_diagnostics=None)
        execute(self.LOOP, env, config=InterpreterConfig())
        self.assertEqual(len(env.diagnostics), 503)


class MappingViewTests(unittest.TestCase):
    def test_constructor_data_and_iteration_order(self) -> None:
        env = Environment({"A$1": 2.0, "x": 1.0, "A$0": 3.0}, builtins=False)
        self.assertEqual(list(env), ["x", "A$0", "A$1"])
        self.assertEqual(len(env), 3)

    def test_snapshot_is_plain_floats(self) -> None:
        env = Environment({"x": 1.5, "A$0": 2.0})
        snapshot = env.snapshot()
        self.assertEqual(set(snapshot), {"pi", "e", "x", "A$0"})
        self.assertIsInstance(snapshot["x"], float)
        self.assertEqual(snapshot["A$0"], 2.0)


if __name__ == "__main__":
    unittest.main()
