import unittest

import natlint


SUPPRESSED_VAULT = """// natlint-disable-next-line MissingNotice
contract Vault {
    // natlint-disable-next-line
    function deposit(uint256 amount) public {}
}
"""


class DisableDirectiveTests(unittest.TestCase):
    def test_directive_parsing(self) -> None:
        source = "\n".join([
            "uint a; // natlint-disable-next-line",
            "//natlint-disable-next-line MissingNotice, MissingTitle",
            "// natlint-disable-next-line   NoAuthor ,",
            "// natlint-disable-line MissingNotice",
        ])
        directives = natlint.disable_next_line_directives(source)
        self.assertEqual(directives, {
            2: None,
            3: frozenset({"MissingNotice", "MissingTitle"}),
            4: frozenset({"NoAuthor"}),
        })

    def test_lint_applies_directives(self) -> None:
        found = natlint.lint(SUPPRESSED_VAULT, natlint.default_rules())
        self.assertEqual([(v.rule_name, line) for v, line in found], [("MissingTitle", 2)])

    def test_directives_do_not_affect_raw_checks(self) -> None:
        found = natlint.build_and_check(SUPPRESSED_VAULT, natlint.default_rules())
        self.assertEqual(len(found), 5)

    def test_directive_only_covers_next_line(self) -> None:
        source = "// natlint-disable-next-line\n\ncontract Vault {}\n"
        found = natlint.lint(source, [natlint.find_rule("Contract", "MissingNotice")])
        self.assertEqual([line for _, line in found], [3])


if __name__ == "__main__":
    unittest.main()
