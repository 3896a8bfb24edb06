"""Parsers for per-module dependency graph exports."""

import json
import logging
from typing import Any, Dict, List, Mapping, Optional, Union
from urllib.parse import urlparse

import requests

from .exceptions import ParseError
from .models import DependencyGraphNode

logger = logging.getLogger(__name__)

# Top-level manifest sections of package.json and the scope they map to
NPM_SCOPE_SECTIONS = [
    ('dependencies', 'prod'),
    ('devDependencies', 'dev'),
    ('optionalDependencies', 'optional'),
]

# Appended to the module name when none of its dependencies are installed
NOT_INSTALLED_SUFFIX = " (Not installed)"


def _is_url(path: str) -> bool:
    """Check if a path is a URL."""
    return urlparse(path).scheme in ('http', 'https')


def read_content(path: str) -> bytes:
    """
    Read raw bytes from either a file path or URL.

    Args:
        path: File path or URL

    Returns:
        Content as bytes

    Raises:
        FileNotFoundError: If file doesn't exist
        requests.RequestException: If URL fetch fails
    """
    if _is_url(path):
        logger.info(f"Fetching content from URL: {path}")
        response = requests.get(path, timeout=30)
        response.raise_for_status()
        return response.content
    logger.info(f"Reading content from file: {path}")
    with open(path, 'rb') as f:
        return f.read()


def _require_str(data: Dict[str, Any], key: str, location: str) -> str:
    value = data.get(key)
    if not isinstance(value, str):
        if key not in data or value is None:
            raise ParseError(f"{location}: missing required field '{key}'")
        raise ParseError(f"{location}.{key}: expected a string, got {type(value).__name__}")
    return value


class GraphParser:
    """
    Parser for the JSON dependency graph written for each module.

    Each file holds one object of the form::

        {"groupId": "...", "artifactId": "...", "version": "...",
         "scopes": ["..."], "unresolved": false, "dependencies": [...]}

    where ``scopes``, ``unresolved`` and ``dependencies`` are optional.
    Parsing is a pure function of the input: nothing is cached between calls.
    """

    @staticmethod
    def parse(raw: Union[bytes, str]) -> DependencyGraphNode:
        """
        Parse one module's dependency graph.

        Args:
            raw: File content as bytes or text

        Returns:
            The module's root graph node

        Raises:
            ParseError: If the content is not valid JSON or misses coordinates
        """
        try:
            data = json.loads(raw)
        except RecursionError as e:
            raise ParseError("Dependency graph is nested too deeply to decode") from e
        except ValueError as e:
            raise ParseError(f"Invalid JSON: {e}") from e

        try:
            return GraphParser._parse_node(data, '$')
        except RecursionError as e:
            raise ParseError("Dependency graph is nested too deeply to decode") from e

    @staticmethod
    def _parse_node(data: Any, location: str) -> DependencyGraphNode:
        if not isinstance(data, dict):
            raise ParseError(f"{location}: expected an object, got {type(data).__name__}")

        group_id = _require_str(data, 'groupId', location)
        artifact_id = _require_str(data, 'artifactId', location)
        version = _require_str(data, 'version', location)

        scopes = data.get('scopes')
        if scopes is None:
            scopes = []
        elif not isinstance(scopes, list) or not all(isinstance(s, str) for s in scopes):
            raise ParseError(f"{location}.scopes: expected a list of strings")

        unresolved = data.get('unresolved')
        if unresolved is None:
            unresolved = False
        elif not isinstance(unresolved, bool):
            raise ParseError(f"{location}.unresolved: expected a boolean, got {type(unresolved).__name__}")

        raw_dependencies = data.get('dependencies')
        if raw_dependencies is None:
            raw_dependencies = []
        elif not isinstance(raw_dependencies, list):
            raise ParseError(f"{location}.dependencies: expected a list, got {type(raw_dependencies).__name__}")

        dependencies = [
            GraphParser._parse_node(child, f"{location}.dependencies[{i}]")
            for i, child in enumerate(raw_dependencies)
        ]

        return DependencyGraphNode(
            group_id=group_id,
            artifact_id=artifact_id,
            version=version,
            scopes=list(scopes),
            unresolved=unresolved,
            dependencies=dependencies,
        )


class NpmListingAdapter:
    """Converts ``npm ls --json --all`` output into the per-module graph format."""

    @staticmethod
    def to_module_graph(
        listing: Mapping[str, Any],
        manifest: Optional[Mapping[str, Any]] = None,
        default_name: str = '',
    ) -> Dict[str, Any]:
        """
        Build a module graph document from an npm listing.

        Top-level dependencies get their scopes from the package.json section
        declaring them (a package declared in both dependencies and
        devDependencies gets both). Transitive dependencies inherit the scopes
        of the top-level dependency that pulled them in.

        When every top-level dependency is missing the project was never
        installed: the module name gets a " (Not installed)" suffix and no
        dependencies are listed. Partially installed projects keep their
        missing packages as unresolved dependencies.

        Args:
            listing: Parsed output of ``npm ls --json --all``
            manifest: Parsed package.json of the module
            default_name: Module name used when neither document has one

        Returns:
            A dict in the per-module graph format accepted by GraphParser
        """
        manifest = manifest or {}
        declared: Dict[str, List[str]] = {}
        for section, scope in NPM_SCOPE_SECTIONS:
            for package in (manifest.get(section) or {}):
                declared.setdefault(package, []).append(scope)

        name = listing.get('name') or manifest.get('name') or default_name
        entries = listing.get('dependencies') or {}
        dependencies = []
        if entries and all(NpmListingAdapter._is_missing(entry or {}) for entry in entries.values()):
            logger.info(f"npm project {name} has no installed dependencies")
            name += NOT_INSTALLED_SUFFIX
        else:
            for dep_name, entry in entries.items():
                scopes = declared.get(dep_name, [])
                if not scopes:
                    logger.debug(f"npm dependency {dep_name} is not declared in package.json")
                dependencies.append(NpmListingAdapter._convert(dep_name, entry or {}, scopes))

        return {
            'groupId': '',
            'artifactId': name,
            'version': listing.get('version') or manifest.get('version', ''),
            'dependencies': dependencies,
        }

    @staticmethod
    def _is_missing(entry: Mapping[str, Any]) -> bool:
        return bool(entry.get('missing')) or 'version' not in entry

    @staticmethod
    def _convert(name: str, entry: Mapping[str, Any], scopes: List[str]) -> Dict[str, Any]:
        missing = NpmListingAdapter._is_missing(entry)
        version = entry.get('version')
        if not version:
            # Missing packages only report the requested range
            required = entry.get('required')
            version = required if isinstance(required, str) else ''
        node = {
            'groupId': '',
            'artifactId': name,
            'version': version,
            'scopes': list(scopes),
            'dependencies': [
                NpmListingAdapter._convert(child_name, child or {}, scopes)
                for child_name, child in (entry.get('dependencies') or {}).items()
            ],
        }
        if missing:
            node['unresolved'] = True
        return node
