import unittest

from interfaces.telegram.callback_data import encode_delete_message, parse_delete_message


class DeleteCallbackDataTests(unittest.TestCase):
    def test_encode_and_parse(self):
        data = encode_delete_message("0f3c9a6e2b7d4c1a8e5f6a7b8c9d0e1f")
        self.assertEqual(data, "del:0f3c9a6e2b7d4c1a8e5f6a7b8c9d0e1f")
        self.assertEqual(parse_delete_message(data), "0f3c9a6e2b7d4c1a8e5f6a7b8c9d0e1f")

    def test_rejects_overlong_ids(self):
        with self.assertRaises(ValueError):
            encode_delete_message("x" * 61)

    def test_rejects_malformed_data(self):
        for data in ["del:", "del", "from:1:to:2:3", "del:a:b"]:
            with self.subTest(data=data):
                with self.assertRaises(ValueError):
                    parse_delete_message(data)


if __name__ == "__main__":
    unittest.main()
