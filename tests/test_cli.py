import io
import json
import os
import tempfile
import unittest
from unittest import mock

import natlint


UNDOCUMENTED = """contract Vault {
    function deposit(uint256 amount) public {}
}
"""

CLEAN = """/// @title Clean
/// @notice Nothing to see
contract Clean {
    /// @notice Adds
    /// @param a Left
    /// @param b Right
    /// @return sum The sum
    function add(uint256 a, uint256 b) internal pure returns (uint256 sum) {
        sum = a + b;
    }
}
"""


class CliTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.root = self._tmp.name
        self.config_path = os.path.join(self.root, "natlint.yaml")

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def write(self, relative, text):
        path = os.path.join(self.root, relative)
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, "w", encoding="utf-8") as handle:
            handle.write(text)
        return path

    def run_cli(self, *argv):
        with mock.patch("sys.stdout", new_callable=io.StringIO) as stdout, \
                mock.patch("sys.stderr", new_callable=io.StringIO) as stderr:
            code = natlint.main(list(argv))
        return code, stdout.getvalue(), stderr.getvalue()


class RunCommandTests(CliTestCase):
    def test_json_report_with_excludes_and_errors(self) -> None:
        self.write("src/Vault.sol", UNDOCUMENTED)
        self.write("src/Clean.sol", CLEAN)
        self.write("src/Broken.sol", "contract Broken {")
        self.write("lib/Dep.sol", UNDOCUMENTED)
        out = os.path.join(self.root, "report.json")

        code, _, stderr = self.run_cli(
            "run", "--root", self.root, "-e", "lib/**",
            "-c", self.config_path, "--format", "json", "--out", out,
        )

        self.assertEqual(code, 1)
        self.assertIn("Error processing file", stderr)
        self.assertIn("Broken.sol", stderr)
        with open(out, "r", encoding="utf-8") as handle:
            report = json.load(handle)
        self.assertEqual({os.path.basename(r["location"]["file"]) for r in report}, {"Vault.sol"})
        self.assertEqual(
            [(r["location"]["line"], r["rule"]) for r in report],
            [(1, "MissingNotice"), (1, "MissingTitle"), (2, "MissingInheritdoc"), (2, "MissingNotice"), (2, "MissingParams")],
        )
        self.assertEqual(report[0]["tool"], "natlint")
        self.assertEqual(report[0]["error"]["message"], "Missing a @notice comment")
        self.assertEqual(report[4]["error"]["kind"], "MissingCommentFor")
        self.assertEqual(report[4]["error"]["name"], "amount")

    def test_clean_tree_exits_zero(self) -> None:
        self.write("contracts/Clean.sol", CLEAN)
        code, stdout, _ = self.run_cli("run", "--root", self.root, "-c", self.config_path)
        self.assertEqual(code, 0)
        self.assertIn("No natspec violations found!", stdout)

    def test_json_span_is_in_bytes(self) -> None:
        source = "// Größe\ncontract Vault {}\n"
        self.write("Vault.sol", source)
        out = os.path.join(self.root, "report.json")
        self.run_cli("run", "--root", self.root, "-c", self.config_path, "--format", "json", "--out", out)
        with open(out, "r", encoding="utf-8") as handle:
            report = json.load(handle)
        encoded = source.encode("utf-8")
        self.assertEqual(report[0]["location"]["start"], encoded.index(b"contract"))
        self.assertEqual(report[0]["location"]["end"], encoded.rindex(b"}") + 1)
        self.assertEqual(report[0]["location"]["column"], 1)

    def test_text_report(self) -> None:
        self.write("Vault.sol", UNDOCUMENTED)
        code, stdout, stderr = self.run_cli("run", "--root", self.root, "-c", self.config_path, "-v")
        self.assertEqual(code, 1)
        self.assertIn("  [MissingTitle] Line 1: Contracts must have a title comment.", stdout)
        self.assertIn("Found 5 natspec violations in 1 files.", stdout)
        self.assertIn("[natlint] Found 1 files to lint", stderr)

    def test_include_and_config(self) -> None:
        self.write("src/Vault.sol", UNDOCUMENTED)
        self.write("test/Vault.t.sol", UNDOCUMENTED)
        self.write("natlint.yaml", "contract_rules:\n  missing_title: false\nfunction_rules:\n  missing_inheritdoc: false\n")
        out = os.path.join(self.root, "report.json")
        code, _, _ = self.run_cli(
            "run", "--root", self.root, "-i", "src/*.sol",
            "-c", self.config_path, "--format", "json", "--out", out,
        )
        self.assertEqual(code, 1)
        with open(out, "r", encoding="utf-8") as handle:
            report = json.load(handle)
        self.assertEqual([r["rule"] for r in report], ["MissingNotice", "MissingNotice", "MissingParams"])

    def test_bad_config(self) -> None:
        self.write("Vault.sol", UNDOCUMENTED)
        self.write("natlint.yaml", "contract_rules:\n  missing_title: maybe\n")
        code, _, stderr = self.run_cli("run", "--root", self.root, "-c", self.config_path)
        self.assertEqual(code, 2)
        self.assertIn("must be true or false", stderr)


class InitCommandTests(CliTestCase):
    def test_init_writes_defaults_and_refuses_overwrite(self) -> None:
        code, stdout, _ = self.run_cli("init", "-c", self.config_path)
        self.assertEqual(code, 0)
        self.assertIn("Wrote default configuration", stdout)
        self.assertEqual(natlint.Config.from_file(self.config_path), natlint.Config())

        code, _, stderr = self.run_cli("init", "-c", self.config_path)
        self.assertEqual(code, 1)
        self.assertIn("already exists", stderr)

        code, _, _ = self.run_cli("init", "-c", self.config_path, "--force")
        self.assertEqual(code, 0)


class DiscoveryTests(CliTestCase):
    def test_find_matching_files(self) -> None:
        a = self.write("src/A.sol", "")
        nested = self.write("src/deep/B.sol", "")
        self.write("lib/C.sol", "")
        self.write("src/readme.md", "")
        found = natlint.find_matching_files(self.root, ["**/*.sol"], ["lib/*"])
        self.assertEqual(found, sorted([os.path.normpath(a), os.path.normpath(nested)]))


if __name__ == "__main__":
    unittest.main()
