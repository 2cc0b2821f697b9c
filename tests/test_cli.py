import json
import os
import unittest

from click.testing import CliRunner

from pinguard.__main__ import _overrides, main


def tree(*children):
    return {"groupId": "com.example", "artifactId": "app", "version": "1.0", "children": list(children)}


def dep(name, version, **extra):
    return dict({"groupId": "org.foo", "artifactId": name, "version": version, "scope": "compile"}, **extra)


class CliTestCase(unittest.TestCase):

    def setUp(self):
        self.runner = CliRunner()

    def write(self, name, content):
        with open(name, "w", encoding="utf-8") as f:
            f.write(content)

    def write_tree(self, data):
        self.write("dependency-tree.json", json.dumps(data))


class TestCheck(CliTestCase):

    def test_pinned_project_passes(self):
        with self.runner.isolated_filesystem():
            self.write_tree(tree(dep("bar", "1.2.3", children=[dep("baz", "2.0")])))

            result = self.runner.invoke(main, ["check"])

        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("No dynamic versions found", result.output)
        self.assertIn("Dependency Tree (JSON)", result.output)

    def test_dynamic_versions_fail(self):
        with self.runner.isolated_filesystem():
            self.write_tree(tree(dep("bar", "1.0", children=[dep("baz", "LATEST")]), dep("qux", "[1.0,2.0)")))

            result = self.runner.invoke(main, ["check"])

        self.assertEqual(result.exit_code, 1)
        self.assertIn("Rule failed with message:", result.output)
        self.assertIn("Found 2 dependencies with dynamic versions.", result.output)
        self.assertIn("Dependency org.foo:baz:jar:LATEST (compile) via org.foo:bar:jar:1.0 is referenced with a banned "
                      "dynamic version LATEST", result.output)

    def test_flags_override_policy_file(self):
        with self.runner.isolated_filesystem():
            self.write_tree(tree(dep("bar", "2.0-SNAPSHOT")))
            self.write("pinguard.toml", "allow-snapshots = false\n")

            failing = self.runner.invoke(main, ["check"])
            passing = self.runner.invoke(main, ["check", "--allow-snapshots"])

        self.assertEqual(failing.exit_code, 1)
        self.assertEqual(passing.exit_code, 0, passing.output)

    def test_ignore_pattern(self):
        with self.runner.isolated_filesystem():
            self.write_tree(tree(dep("bar", "LATEST")))

            result = self.runner.invoke(main, ["check", "--ignore", "org.foo:bar"])

        self.assertEqual(result.exit_code, 0, result.output)

    def test_invalid_configuration(self):
        with self.runner.isolated_filesystem():
            self.write_tree(tree(dep("bar", "1.0")))

            result = self.runner.invoke(main, ["check", "--exclude-scope", "nope"])

        self.assertEqual(result.exit_code, 2)
        self.assertIn("Error:", result.output)

    def test_no_project(self):
        with self.runner.isolated_filesystem():
            result = self.runner.invoke(main, ["check"])

        self.assertEqual(result.exit_code, 2)
        self.assertIn("No supported project found.", result.output)

    def test_project_option(self):
        with self.runner.isolated_filesystem():
            cwd = os.getcwd()
            os.mkdir("demo")
            with open(os.path.join("demo", "requirements.txt"), "w", encoding="utf-8") as f:
                f.write("requests==2.31.0\nflask>=2.0\n")

            result = self.runner.invoke(main, ["--project", "demo", "check"])
            os.chdir(cwd)

        self.assertEqual(result.exit_code, 1)
        self.assertIn("Found 1 dependency with dynamic versions.", result.output)

    def test_overrides(self):
        flags = {"allow_latest": True, "allow_ranges": None, "excluded_scopes": ("test",), "ignores": ()}

        self.assertEqual(_overrides(flags), {"allow-latest": True, "excluded-scopes": ["test"]})


class TestFiles(CliTestCase):

    def test_files_exist(self):
        with self.runner.isolated_filesystem():
            self.write("LICENSE", "MIT")

            result = self.runner.invoke(main, ["files", "LICENSE"])

        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("RequireFilesExist passed", result.output)

    def test_files_missing(self):
        with self.runner.isolated_filesystem():
            result = self.runner.invoke(main, ["files", "-m", "Add a license.", "LICENSE"])

        self.assertEqual(result.exit_code, 1)
        self.assertIn("Add a license.", result.output)
        self.assertIn("Some required files are missing:", result.output)

    def test_files_absent(self):
        with self.runner.isolated_filesystem():
            self.write("debug.txt", "")

            result = self.runner.invoke(main, ["files", "--absent", "debug.txt"])

        self.assertEqual(result.exit_code, 1)
        self.assertIn("Some files should not exist:", result.output)

    def test_no_paths(self):
        result = self.runner.invoke(main, ["files"])

        self.assertEqual(result.exit_code, 2)

    def test_no_paths_allowed(self):
        result = self.runner.invoke(main, ["files", "--allow-nulls"])

        self.assertEqual(result.exit_code, 0, result.output)


class TestVersion(CliTestCase):

    def test_version(self):
        result = self.runner.invoke(main, ["--version"])

        self.assertEqual(result.exit_code, 0)
        self.assertIn("pinguard", result.output)
