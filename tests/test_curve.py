import unittest

from solders.keypair import Keypair
from solders.pubkey import Pubkey

from pdascope.curve import check_seeds, classify, hash_seeds, is_on_curve
from pdascope.errors import InvalidSeedLength

# Compressed Edwards25519 base point (y = 4/5).
BASE_POINT = bytes.fromhex("58" + "66" * 31)
PROGRAM = bytes(Pubkey.from_string("RoutR1VdCpHqj89WEMJhb6TkGT9cPfr1rVjhM3e2YQr"))


class CurveTests(unittest.TestCase):
    def test_base_point_is_on_curve(self) -> None:
        self.assertTrue(is_on_curve(BASE_POINT))

    def test_identity_point_is_on_curve(self) -> None:
        self.assertTrue(is_on_curve(b"\x01" + b"\x00" * 31))

    def test_sign_bit_is_ignored(self) -> None:
        flipped = BASE_POINT[:31] + bytes([BASE_POINT[31] | 0x80])
        self.assertTrue(is_on_curve(flipped))

    def test_keypair_pubkeys_are_on_curve(self) -> None:
        for _ in range(5):
            self.assertTrue(is_on_curve(bytes(Keypair().pubkey())))

    def test_agrees_with_solders(self) -> None:
        for bump in range(256):
            digest = hash_seeds(PROGRAM, [b"agree", bytes([bump])])
            self.assertEqual(is_on_curve(digest), Pubkey(digest).is_on_curve(), msg=f"bump {bump}")

    def test_rejects_wrong_length(self) -> None:
        with self.assertRaises(ValueError):
            is_on_curve(b"\x00" * 31)

    def test_seed_limits(self) -> None:
        check_seeds([b"a" * 32] * 16)
        with self.assertRaisesRegex(InvalidSeedLength, "max seed length"):
            check_seeds([b"a" * 33])
        with self.assertRaisesRegex(InvalidSeedLength, "too many seeds"):
            check_seeds([b"a"] * 17)

    def test_classify_is_deterministic(self) -> None:
        first = classify(PROGRAM, [b"vault"])
        second = classify(PROGRAM, [b"vault"])
        self.assertEqual(first, second)
        self.assertEqual(len(first[0]), 32)

    def test_hash_depends_on_program(self) -> None:
        other = bytes(Pubkey.from_string("SLabZ6PsDLh2X6HzEoqxFDMqCVcJXDKCNEYuPzUvGPk"))
        self.assertNotEqual(hash_seeds(PROGRAM, [b"vault"]), hash_seeds(other, [b"vault"]))


if __name__ == "__main__":
    unittest.main()
