import unittest
from unittest.mock import patch, mock_open
from pinguard.core.errors import ResolutionFailure
from pinguard.core.model import Version, VersionConstraint
from pinguard.managers.base import DependencySelector
from pinguard.managers.python import PythonManager, pep440_to_constraint, poetry_to_constraint


class TestSpecifierTranslation(unittest.TestCase):

    def test_pep440(self):
        cases = {
            "": "LATEST",
            "==2.31.0": "2.31.0",
            ">=2.0": "[2.0,)",
            ">1.0,<2": "(1.0,2)",
            ">=1.0, <=1.5": "[1.0,1.5]",
            "==1.4.*": "[1.4,1.5)",
            "~=1.4.2": "[1.4.2,1.5)",
            "~=2.2": "[2.2,3)",
            "!=1.5": "LATEST",
            ">=1.0,!=1.5": "[1.0,)",
        }
        for specifier, expected in cases.items():
            with self.subTest(specifier=specifier):
                self.assertEqual(pep440_to_constraint(specifier), expected)

    def test_poetry(self):
        cases = {
            "*": "LATEST",
            "^1.2.3": "[1.2.3,2)",
            "^0.2.3": "[0.2.3,0.3)",
            "~1.2.3": "[1.2.3,1.3)",
            "1.2.3": "1.2.3",
            ">=1,<2": "[1,2)",
            ">=1.0 <2.0": "[1.0,2.0)",
            ">= 1.2, < 1.5": "[1.2,1.5)",
            "^1.0 || ^2.0": "[1.0,2),[2.0,3)",
            "1.2.3 || ^2.0": "[1.2.3],[2.0,3)",
            "^1.0 || *": "LATEST",
        }
        for constraint, expected in cases.items():
            with self.subTest(constraint=constraint):
                self.assertEqual(poetry_to_constraint(constraint), expected)

    def test_poetry_alternatives_parse_as_one_range(self):
        constraint = VersionConstraint.parse(poetry_to_constraint("^1.0 || ^2.0"))

        self.assertEqual(len(constraint.range.restrictions), 2)
        self.assertTrue(constraint.range.contains(Version("2.5")))
        self.assertFalse(constraint.range.contains(Version("3.0")))


class TestPythonManager(unittest.TestCase):

    def setUp(self):
        self.manager = PythonManager()
        self.selector = DependencySelector()

    def test_parse_requirements_simple(self):
        mock_content = """
        requests==2.31.0
        flask>=2.0
        # comment
        textual
        mylib @ https://example.com/mylib.zip
        """

        with patch("builtins.open", mock_open(read_data=mock_content)):
            root = self.manager._parse_requirements(["requirements.txt"], self.selector)

        self.assertEqual(root.artifact.name, "requirements.txt")
        versions = {c.artifact.name: str(c.constraint) for c in root.children}
        self.assertEqual(versions["requests"], "2.31.0")
        self.assertEqual(versions["flask"], "[2.0,)")
        self.assertEqual(versions["textual"], "LATEST")
        self.assertEqual(versions["mylib"], "")
        self.assertEqual(len(root.children), 4)

    def test_dev_requirements_carry_test_scope(self):
        with patch("builtins.open", mock_open(read_data="pytest>=7\n")):
            root = self.manager._parse_requirements(["requirements-dev.txt"], self.selector)

        self.assertEqual(root.children[0].scope, "test")

    @patch("os.listdir")
    def test_detect_requirements_files(self, mock_listdir):
        mock_listdir.return_value = ["main.py", "requirements.txt", "requirements_dev.txt", "README.md"]

        self.assertTrue(self.manager.detect(mock_listdir.return_value))

    @patch("pinguard.managers.python.os.path.exists")
    @patch("pinguard.managers.python.os.listdir")
    def test_priority_logic(self, mock_listdir, mock_exists):
        mock_exists.return_value = False
        mock_listdir.return_value = ["requirements.txt"]

        with patch.object(self.manager, '_parse_requirements') as mock_parse:
            mock_parse.return_value = "FakeRoot"

            self.manager.get_dependencies(self.selector)

            mock_parse.assert_called_once()

    @patch("pinguard.managers.python.os.path.exists")
    @patch("pinguard.managers.python.os.listdir")
    def test_nothing_to_read(self, mock_listdir, mock_exists):
        mock_exists.return_value = False
        mock_listdir.return_value = ["main.py"]

        with self.assertRaises(ResolutionFailure):
            self.manager.get_dependencies(self.selector)

    def test_parse_pyproject(self):
        mock_content = b"""
[project]
name = "demo"
version = "1.0"
dependencies = ["click>=8", "rich==13.7.1"]

[project.optional-dependencies]
docs = ["mkdocs"]
"""
        with patch("builtins.open", mock_open(read_data=mock_content)):
            root = self.manager._parse_pyproject(self.selector)

        self.assertEqual(root.artifact.name, "demo")
        self.assertEqual(root.scope, "")
        children = {c.artifact.name: c for c in root.children}
        self.assertEqual(str(children["click"].constraint), "[8,)")
        self.assertEqual(str(children["rich"].constraint), "13.7.1")
        self.assertTrue(children["mkdocs"].optional)

    def test_parse_poetry_pyproject(self):
        mock_content = b"""
[tool.poetry]
name = "legacy"

[tool.poetry.dependencies]
python = "^3.9"
httpx = "^0.27"
local = { path = "../local" }

[tool.poetry.group.dev.dependencies]
pytest = "*"
"""
        with patch("builtins.open", mock_open(read_data=mock_content)):
            root = self.manager._parse_pyproject(self.selector)

        children = {c.artifact.name: c for c in root.children}
        self.assertNotIn("python", children)
        self.assertEqual(str(children["httpx"].constraint), "[0.27,0.28)")
        self.assertEqual(children["local"].constraint.raw, "")
        self.assertEqual(children["pytest"].scope, "test")
        self.assertEqual(str(children["pytest"].constraint), "LATEST")

    def test_parse_poetry_lock(self):
        mock_content = b"""
[[package]]
name = "requests"
version = "2.31.0"

[[package]]
name = "pytest"
version = "8.0.0"
category = "dev"
"""
        with patch("builtins.open", mock_open(read_data=mock_content)):
            root = self.manager._parse_poetry(self.selector)

        self.assertEqual([c.artifact.name for c in root.children], ["requests", "pytest"])
        self.assertEqual(root.children[1].scope, "test")
        self.assertIsNotNone(root.children[0].constraint.version)
