import unittest
from dataclasses import FrozenInstanceError

from core.errors import ConfigurationError
from core.policy_guard import ProtectionPolicy, is_follow_up_action, parse_policy
from records.models import CollectionRef, Record


def _callback(context) -> None:
    return None


def _other_callback(context) -> None:
    return None


class ParsePolicyTests(unittest.TestCase):
    def test_no_arguments_protects_everything(self) -> None:
        policy = parse_policy()
        self.assertTrue(policy.protects_all)
        self.assertIsNone(policy.on_success)
        self.assertIsNone(policy.config_error)

    def test_only_callback(self) -> None:
        policy = parse_policy(_callback)
        self.assertTrue(policy.protects_all)
        self.assertIs(policy.on_success, _callback)

    def test_strings_and_callback_in_any_order(self) -> None:
        policy = parse_policy("name", _callback, "status", "name")
        self.assertEqual(policy.protected, ("name", "status", "name"))
        self.assertIs(policy.on_success, _callback)
        self.assertIsNone(policy.config_error)

    def test_second_callback_is_deferred_error(self) -> None:
        policy = parse_policy("f1", "f2", _callback, _other_callback)
        self.assertIn("only one callback function can be provided", policy.config_error)
        self.assertIs(policy.on_success, _callback)
        with self.assertRaises(ConfigurationError):
            policy.raise_for_config()

    def test_invalid_argument_type_names_type_and_position(self) -> None:
        policy = parse_policy("field1", 123)
        self.assertEqual(policy.config_error, "invalid argument type int at position 1")

    def test_parsing_stops_at_first_error(self) -> None:
        policy = parse_policy(1.5, "field1")
        self.assertEqual(policy.protected, ())
        self.assertIn("float at position 0", policy.config_error)

    def test_lambdas_and_bound_methods_are_callbacks(self) -> None:
        class Notifier:
            def notify(self, context) -> None:
                return None

        self.assertTrue(is_follow_up_action(lambda context: None))
        self.assertTrue(is_follow_up_action(Notifier().notify))

    def test_wrong_arity_callable_is_rejected(self) -> None:
        policy = parse_policy(lambda: None)
        self.assertIn("invalid argument type function", policy.config_error)
        self.assertFalse(is_follow_up_action(lambda a, b: None))
        self.assertFalse(is_follow_up_action(dict))

    def test_policy_is_frozen(self) -> None:
        policy = parse_policy("name")
        with self.assertRaises(FrozenInstanceError):
            policy.protected = ("other",)  # type: ignore[misc]


class TypedPolicyTests(unittest.TestCase):
    def test_of_builds_policy(self) -> None:
        policy = ProtectionPolicy.of({"name"}, on_success=_callback)
        self.assertEqual(policy.protected, ("name",))
        self.assertIs(policy.on_success, _callback)

    def test_of_rejects_bad_arguments_eagerly(self) -> None:
        with self.assertRaises(ConfigurationError):
            ProtectionPolicy.of(["name", 3])
        with self.assertRaises(ConfigurationError):
            ProtectionPolicy.of(["name"], on_success="not callable")  # type: ignore[arg-type]

    def test_of_rejects_bare_string_names(self) -> None:
        for names in ("name", b"name"):
            with self.subTest(names=names):
                with self.assertRaises(ConfigurationError):
                    ProtectionPolicy.of(names)  # type: ignore[arg-type]

    def test_of_single_name_still_guards_that_field(self) -> None:
        collection = CollectionRef.define("items", ["name"])
        original = Record(collection, id="r1", data={"name": "a"})
        policy = ProtectionPolicy.of(["name"])
        self.assertEqual(policy.protected, ("name",))
        proposed = original.merged({"name": "b"})
        self.assertEqual(policy.first_changed_field(original, proposed, policy.protected), "name")


class FieldSelectionTests(unittest.TestCase):
    def setUp(self) -> None:
        self.collection = CollectionRef.define("items", ["name", "value", "status"])

    def test_effective_fields_skip_system_fields(self) -> None:
        policy = parse_policy()
        fields = policy.effective_fields(["id", "name", "created", "value", "updated", "expand"])
        self.assertEqual(fields, ["name", "value"])

    def test_explicit_fields_are_used_verbatim(self) -> None:
        policy = parse_policy("updated", "name")
        self.assertEqual(policy.effective_fields(["value"]), ["updated", "name"])

    def test_first_changed_field_in_order(self) -> None:
        policy = parse_policy()
        original = Record(self.collection, id="r1", data={"name": "a", "value": 1, "status": "x"})
        proposed = original.merged({"value": 2, "status": "y"})
        fields = policy.effective_fields(self.collection.fields)
        self.assertEqual(policy.first_changed_field(original, proposed, fields), "value")

    def test_updated_timestamp_is_tolerated(self) -> None:
        policy = parse_policy("updated", "name")
        original = Record(self.collection, id="r1", updated="2024-01-01", data={"name": "a"})
        proposed = original.merged({"updated": "2024-02-02"})
        self.assertIsNone(policy.first_changed_field(original, proposed, policy.protected))

    def test_other_system_fields_are_checked_when_named(self) -> None:
        policy = parse_policy("created")
        original = Record(self.collection, id="r1", created="2024-01-01")
        proposed = original.merged({"created": "2030-01-01"})
        self.assertEqual(policy.first_changed_field(original, proposed, policy.protected), "created")


if __name__ == "__main__":
    unittest.main()
