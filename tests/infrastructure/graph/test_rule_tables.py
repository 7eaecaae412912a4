import unittest

from tapegrad import OpKind
from tapegrad.infrastructure.graph import BACKWARD_RULES, FORWARD_RULES
from tapegrad.infrastructure.graph._backward import backward_rule
from tapegrad.infrastructure.graph._forward import forward_rule


class TestRuleTables(unittest.TestCase):
    def test_every_operator_has_both_rules(self) -> None:
        operators = {k for k in OpKind if k is not OpKind.LEAF}
        self.assertEqual(set(FORWARD_RULES), operators)
        self.assertEqual(set(BACKWARD_RULES), operators)

    def test_duplicate_registration_rejected(self) -> None:
        with self.assertRaises(ValueError):
            forward_rule(OpKind.ADD)(lambda backend, a, b: a)
        with self.assertRaises(ValueError):
            backward_rule(OpKind.MUL)(lambda backend, g, out, a, b: (g, g))


if __name__ == "__main__":
    unittest.main()
