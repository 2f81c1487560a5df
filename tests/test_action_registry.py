import os
import sys
import unittest


ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
SRC = os.path.join(ROOT, "src")
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)
if SRC not in sys.path:
    sys.path.insert(0, SRC)

from action_registry import HandlerRegistry, candidate_handlers, prepares, run_prepare
from admin_errors import ConfigurationFatal


class Base:
    def __init__(self):
        self.calls = []

    @prepares("view")
    def prepare_view(self):
        self.calls.append("base.view")

    @prepares("view", method="get")
    def prepare_get_view(self):
        self.calls.append("base.get_view")


class Child(Base):
    def prepare_view(self):
        self.calls.append("child.view")

    @prepares("view", method="get")
    def show(self):
        self.calls.append("child.show")


class Failing(Base):
    @prepares("view")
    def prepare_view(self):
        raise RuntimeError("boom")

    @prepares("fatal")
    def prepare_fatal(self):
        raise ConfigurationFatal("broken")


class TestActionRegistry(unittest.TestCase):
    def test_candidate_order(self) -> None:
        self.assertEqual(
            candidate_handlers("edit", "quick", "POST"),
            ["prepareEditQuick", "prepareEdit", "preparePostEditQuick", "preparePostEdit"],
        )

    def test_candidates_deduplicate(self) -> None:
        self.assertEqual(candidate_handlers("list", None, "get"), ["prepareList", "prepareGetList"])
        self.assertEqual(candidate_handlers("list", "", None), ["prepareList"])

    def test_collect_and_run(self) -> None:
        registry = HandlerRegistry.collect(Base.__mro__)
        self.assertEqual(registry.names(), ["prepareGetView", "prepareView"])
        owner = Base()
        result = run_prepare(owner, registry, candidate_handlers("view", None, "GET"))
        self.assertEqual(result, {"ran": ["prepareView", "prepareGetView"], "failure": None})
        self.assertEqual(owner.calls, ["base.view", "base.get_view"])

    def test_override_keeps_registration_and_subclass_wins(self) -> None:
        registry = HandlerRegistry.collect(Child.__mro__)
        self.assertEqual(registry.attribute("prepareGetView"), "show")
        owner = Child()
        run_prepare(owner, registry, candidate_handlers("view", None, "GET"))
        self.assertEqual(owner.calls, ["child.view", "child.show"])

    def test_failure_stops_phase(self) -> None:
        registry = HandlerRegistry.collect(Failing.__mro__)
        owner = Failing()
        with self.assertLogs("adminkit.module", level="WARNING"):
            result = run_prepare(owner, registry, candidate_handlers("view", None, "GET"))
        self.assertEqual(result["ran"], [])
        self.assertEqual(result["failure"], "Method (prepareView) failed: boom")
        self.assertEqual(owner.calls, [])

    def test_configuration_fatal_propagates(self) -> None:
        registry = HandlerRegistry.collect(Failing.__mro__)
        with self.assertRaises(ConfigurationFatal):
            run_prepare(Failing(), registry, ["prepareFatal"])


if __name__ == "__main__":
    unittest.main()
