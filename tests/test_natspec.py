import unittest

import natlint


class ParseNatspecLineTests(unittest.TestCase):
    def test_builtin_tags(self) -> None:
        entry = natlint.parse_natspec_line("  @notice Deposits funds  ")
        self.assertEqual(entry.tag, natlint.TAG_NOTICE)
        self.assertEqual(entry.value, "Deposits funds")

        entry = natlint.parse_natspec_line("@inheritdoc IVault")
        self.assertEqual(entry.tag, natlint.TAG_INHERITDOC)
        self.assertEqual(entry.split_first_word(), ("IVault", ""))

    def test_param_and_return_keep_name_in_value(self) -> None:
        entry = natlint.parse_natspec_line("@param amount  The amount to deposit")
        self.assertEqual(entry.tag, natlint.TAG_PARAM)
        self.assertEqual(entry.split_first_word(), ("amount", "The amount to deposit"))

        entry = natlint.parse_natspec_line("@return shares Minted shares")
        self.assertEqual(entry.tag, natlint.TAG_RETURN)
        self.assertEqual(entry.split_first_word()[0], "shares")

    def test_custom_tag(self) -> None:
        entry = natlint.parse_natspec_line("@custom:variant Some A value is present")
        self.assertEqual(entry.tag, natlint.TAG_VARIANT)
        self.assertTrue(entry.tag.is_custom)
        self.assertEqual(entry.split_first_word()[0], "Some")

    def test_errors(self) -> None:
        cases = {
            "no tag here": "MissingTag",
            "@notice": "MissingDescription",
            "@param": "MissingParameterName",
            "@param amount": "MissingParameterDesc",
            "@return": "MissingReturnName",
            "@return value": "MissingReturnDesc",
            "@custom: something": "MissingCustomTag",
            "@since 1.0": "UnknownTag",
        }
        for line, kind in cases.items():
            with self.subTest(line=line):
                with self.assertRaises(natlint.NatspecParseError) as ctx:
                    natlint.parse_natspec_line(line)
                self.assertEqual(ctx.exception.kind, kind)

    def test_tag_rendering(self) -> None:
        self.assertEqual(str(natlint.TAG_TITLE), "@title")
        self.assertEqual(str(natlint.TAG_VARIANT), "@custom:variant")
        self.assertEqual(natlint.CommentTag.custom("variant"), natlint.TAG_VARIANT)


class CommentBlockTests(unittest.TestCase):
    def test_untagged_first_line_is_notice_and_continuations_join(self) -> None:
        block = natlint.CommentBlock.from_doc_groups([
            ["Moves funds", "between vaults", "@param amount The", "amount moved"],
        ])
        self.assertEqual(len(block), 2)
        notice, param = block.entries
        self.assertEqual(notice.tag, natlint.TAG_NOTICE)
        self.assertEqual(notice.value, "Moves funds between vaults")
        self.assertEqual(param.value, "amount The amount moved")

    def test_malformed_lines_are_dropped(self) -> None:
        block = natlint.CommentBlock.from_doc_groups([
            ["@notice Fine"],
            ["@param"],
            ["@since 0.8"],
        ])
        self.assertEqual([entry.tag for entry in block], [natlint.TAG_NOTICE])

    def test_include_tag_and_inheritdoc(self) -> None:
        block = natlint.CommentBlock.from_doc_groups([
            ["@notice One", "@notice Two", "@inheritdoc Base"],
        ])
        self.assertEqual(len(block.include_tag(natlint.TAG_NOTICE)), 2)
        self.assertEqual(block.include_tag(natlint.TAG_PARAM), [])
        self.assertEqual(block.find_inheritdoc_base(), "Base")
        self.assertIsNone(natlint.CommentBlock().find_inheritdoc_base())


if __name__ == "__main__":
    unittest.main()
