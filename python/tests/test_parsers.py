"""Tests for dependency graph parsing."""

import json
from pathlib import Path

import pytest
from unittest.mock import Mock, patch

from deptree.exceptions import ParseError
from deptree.parsers import GraphParser, NpmListingAdapter, read_content

RESOURCES = Path(__file__).parent / "resources"


class TestGraphParser:
    """Tests for the GraphParser class."""

    def test_parse_module_without_dependencies(self):
        """Test optional fields default to empty values."""
        graph = GraphParser.parse((RESOURCES / "gradle" / "empty.json").read_bytes())

        assert graph.group_id == "org.jfrog.test.gradle.publish"
        assert graph.artifact_id == "empty"
        assert graph.version == "1.0-SNAPSHOT"
        assert graph.scopes == []
        assert graph.unresolved is False
        assert graph.dependencies == []

    def test_parse_nested_dependencies_in_order(self):
        """Test dependencies keep the order of the input."""
        graph = GraphParser.parse((RESOURCES / "gradle" / "api.json").read_bytes())

        assert [d.artifact_id for d in graph.dependencies] == [
            "commons-io", "commons-lang3", "junit", "missing"
        ]
        assert graph.dependencies[0].scopes == ["compileClasspath", "runtimeClasspath"]
        assert graph.dependencies[1].dependencies[0].artifact_id == "commons-text"
        assert graph.dependencies[3].unresolved is True

    def test_parse_accepts_text(self):
        """Test text input is parsed like bytes."""
        raw = '{"groupId": "g", "artifactId": "a", "version": "1"}'
        assert GraphParser.parse(raw) == GraphParser.parse(raw.encode('utf-8'))

    def test_null_optional_fields_are_absent(self):
        """Test null scopes, unresolved and dependencies are treated as missing."""
        raw = json.dumps({
            "groupId": "g", "artifactId": "a", "version": "1",
            "scopes": None, "unresolved": None, "dependencies": None,
        })
        graph = GraphParser.parse(raw)

        assert graph.scopes == []
        assert graph.unresolved is False
        assert graph.dependencies == []

    def test_invalid_json(self):
        """Test invalid JSON raises ParseError."""
        with pytest.raises(ParseError, match="Invalid JSON"):
            GraphParser.parse(b'{"groupId": ')

    def test_top_level_must_be_object(self):
        """Test a JSON array is rejected."""
        with pytest.raises(ParseError, match="expected an object"):
            GraphParser.parse(b'[]')

    def test_missing_coordinate_reports_location(self):
        """Test a missing artifactId in a nested dependency is located."""
        with pytest.raises(ParseError) as exc_info:
            GraphParser.parse((RESOURCES / "gradle" / "malformed.json").read_bytes())

        assert "$.dependencies[0]" in str(exc_info.value)
        assert "artifactId" in str(exc_info.value)

    @pytest.mark.parametrize("field, value, message", [
        ("version", 1, "expected a string"),
        ("scopes", "compile", "expected a list of strings"),
        ("scopes", ["compile", 3], "expected a list of strings"),
        ("unresolved", "yes", "expected a boolean"),
        ("dependencies", {}, "expected a list"),
    ])
    def test_wrong_field_types(self, field, value, message):
        """Test fields of the wrong type are rejected."""
        data = {"groupId": "g", "artifactId": "a", "version": "1"}
        data[field] = value

        with pytest.raises(ParseError, match=message):
            GraphParser.parse(json.dumps(data))

    def test_parse_error_is_value_error(self):
        """Test ParseError can be caught as ValueError."""
        with pytest.raises(ValueError):
            GraphParser.parse(b'not json')


class TestNpmListingAdapter:
    """Tests for converting npm ls output."""

    def _load(self):
        with open(RESOURCES / "npm" / "dev-and-prod-ls.json") as f:
            listing = json.load(f)
        with open(RESOURCES / "npm" / "dev-and-prod-package.json") as f:
            manifest = json.load(f)
        return listing, manifest

    def test_module_coordinates(self):
        """Test the module node has no group."""
        listing, manifest = self._load()
        graph = NpmListingAdapter.to_module_graph(listing, manifest)

        assert graph['groupId'] == ''
        assert graph['artifactId'] == 'package-name4'
        assert graph['version'] == '0.0.1'

    def test_scopes_from_manifest_sections(self):
        """Test a package declared as both dependency and devDependency gets both scopes."""
        listing, manifest = self._load()
        graph = NpmListingAdapter.to_module_graph(listing, manifest)
        by_name = {dep['artifactId']: dep for dep in graph['dependencies']}

        assert by_name['progress']['scopes'] == ['prod', 'dev']
        assert by_name['debug']['scopes'] == ['dev']
        # Transitive dependencies inherit the scopes of the direct dependency
        assert by_name['debug']['dependencies'][0]['artifactId'] == 'ms'
        assert by_name['debug']['dependencies'][0]['scopes'] == ['dev']

    def test_missing_package_is_unresolved(self):
        """Test missing packages are unresolved and carry the requested range."""
        listing, manifest = self._load()
        graph = NpmListingAdapter.to_module_graph(listing, manifest)
        left_pad = [dep for dep in graph['dependencies'] if dep['artifactId'] == 'left-pad'][0]

        assert left_pad['unresolved'] is True
        assert left_pad['version'] == '^1.3.0'
        assert left_pad['scopes'] == []

    def test_output_is_accepted_by_graph_parser(self):
        """Test the converted document parses as a module graph."""
        listing, manifest = self._load()
        graph = GraphParser.parse(json.dumps(NpmListingAdapter.to_module_graph(listing, manifest)))

        assert graph.artifact_id == 'package-name4'
        assert len(graph.dependencies) == 3

    def test_name_falls_back_to_manifest(self):
        """Test an empty listing still produces the module from package.json."""
        graph = NpmListingAdapter.to_module_graph({}, {"name": "empty", "version": "0.0.1"})

        assert graph['artifactId'] == 'empty'
        assert graph['dependencies'] == []

    def test_nothing_installed(self):
        """Test a project whose dependencies are all missing is marked as not installed."""
        with open(RESOURCES / "npm" / "dependency-ls.json") as f:
            listing = json.load(f)
        with open(RESOURCES / "npm" / "dependency-package.json") as f:
            manifest = json.load(f)

        graph = NpmListingAdapter.to_module_graph(listing, manifest)

        assert graph['artifactId'] == 'package-name2 (Not installed)'
        assert graph['version'] == '0.0.1'
        assert graph['dependencies'] == []

    def test_default_name(self):
        """Test the default name is used when neither document names the project."""
        graph = NpmListingAdapter.to_module_graph({"dependencies": {"a": {"missing": True}}}, {}, default_name="project")

        assert graph['artifactId'] == 'project (Not installed)'


class TestReadContent:
    """Tests for reading graph files from paths and URLs."""

    def test_read_file(self):
        path = RESOURCES / "gradle" / "empty.json"
        assert read_content(str(path)) == path.read_bytes()

    @patch('deptree.parsers.requests.get')
    def test_read_url(self, mock_get):
        mock_response = Mock()
        mock_response.content = b'{}'
        mock_get.return_value = mock_response

        assert read_content("https://example.com/module.json") == b'{}'
        mock_get.assert_called_once_with("https://example.com/module.json", timeout=30)
        mock_response.raise_for_status.assert_called_once()
