"""Output formatters for canonical dependency trees."""

import json
import logging
from typing import Dict, List, Optional

from packageurl import PackageURL
from cyclonedx.model.bom import Bom
from cyclonedx.model.component import Component, ComponentType, ComponentScope
from cyclonedx.output.json import JsonV1Dot6

from .models import DependencyTree
from .normalizer import UNRESOLVED_SUFFIX

logger = logging.getLogger(__name__)

# Package type tag -> purl type
PURL_TYPES = {
    'gradle': 'maven',
    'maven': 'maven',
    'npm': 'npm',
}

# Scopes of dependencies that are not shipped with the module
EXCLUDED_SCOPES = {
    'dev', 'test', 'provided',
    'testcompileclasspath', 'testruntimeclasspath', 'testimplementation',
    'testcompileonly', 'testruntimeonly', 'annotationprocessor', 'compileonly',
}
OPTIONAL_SCOPES = {'optional', 'peer'}

# Appended to the bom-ref of unresolved components
UNRESOLVED_REF_QUALIFIER = '?unresolved=true'


class OutputFormatter:
    """Formatter for various output formats."""

    @staticmethod
    def format_as_tree(tree: DependencyTree) -> str:
        """Format as a tree visualization with the scopes of each node."""
        lines = OutputFormatter._format_tree_node(tree, "", True, 0)
        return '\n'.join(lines) + '\n'

    @staticmethod
    def _format_tree_node(node: DependencyTree, prefix: str, is_last: bool, depth: int) -> List[str]:
        label = node.name
        scope_names = sorted(scope.name for scope in node.scopes if not scope.is_default)
        if scope_names:
            label += f" ({', '.join(scope_names)})"

        if depth == 0:
            lines = [label]
            child_prefix = ""
        else:
            connector = "└── " if is_last else "├── "
            lines = [f"{prefix}{connector}{label}"]
            child_prefix = prefix + ("    " if is_last else "│   ")

        for i, child in enumerate(node.children):
            is_last_child = (i == len(node.children) - 1)
            lines.extend(OutputFormatter._format_tree_node(child, child_prefix, is_last_child, depth + 1))
        return lines

    @staticmethod
    def format_as_json(tree: DependencyTree) -> str:
        """Format the tree as nested JSON objects."""
        return json.dumps(tree.to_dict(), indent=2) + '\n'

    @staticmethod
    def format_as_sbom(tree: DependencyTree) -> str:
        """
        Generate a CycloneDX SBOM in JSON format.

        The tree root becomes the metadata component. Every other node becomes
        one component per distinct component id, and the tree edges become the
        dependencies section.
        """
        from . import __version__

        bom = Bom()

        tool_component = Component(
            name="deptree",
            version=__version__,
            type=ComponentType.APPLICATION,
        )
        bom.metadata.tools.components.add(tool_component)

        root_component = OutputFormatter._node_to_component(tree, tree.scopes)
        bom.metadata.component = root_component
        root_ref = root_component.bom_ref.value

        # Collect scopes and edges over all occurrences of each component
        nodes_by_ref: Dict[str, DependencyTree] = {}
        scopes_by_ref: Dict[str, set] = {}
        depends_on: Dict[str, List[str]] = {root_ref: []}

        for node in tree.walk():
            ref = root_ref if node is tree else OutputFormatter._bom_ref(node)
            if node is not tree:
                nodes_by_ref.setdefault(ref, node)
                scopes_by_ref.setdefault(ref, set()).update(node.scopes)
            children = depends_on.setdefault(ref, [])
            for child in node.children:
                child_ref = OutputFormatter._bom_ref(child)
                if child_ref not in children:
                    children.append(child_ref)

        for ref, node in nodes_by_ref.items():
            if ref == root_ref:
                continue
            bom.components.add(OutputFormatter._node_to_component(node, scopes_by_ref[ref]))

        sbom = json.loads(JsonV1Dot6(bom).output_as_string())

        # Dependencies are written from the tree edges directly, in tree order
        sbom['dependencies'] = [
            {'ref': ref, 'dependsOn': children}
            for ref, children in depends_on.items()
        ]

        logger.info(f"Generated SBOM with {len(nodes_by_ref)} components")
        return json.dumps(sbom, indent=2) + '\n'

    @staticmethod
    def _scopes_to_cyclonedx(scopes: set) -> ComponentScope:
        """
        Map dependency scopes to a CycloneDX ComponentScope.

          dev, test, provided... only -> EXCLUDED
          optional/peer only         -> OPTIONAL
          anything else              -> REQUIRED
        """
        names = {scope.name.lower() for scope in scopes if not scope.is_default}
        if not names:
            return ComponentScope.REQUIRED
        if names <= OPTIONAL_SCOPES:
            return ComponentScope.OPTIONAL
        if names <= EXCLUDED_SCOPES | OPTIONAL_SCOPES:
            return ComponentScope.EXCLUDED
        return ComponentScope.REQUIRED

    @staticmethod
    def _node_to_component(node: DependencyTree, scopes: set) -> Component:
        """Convert a tree node to a CycloneDX Component."""
        info = node.general_info
        purl = OutputFormatter._build_purl(node)
        is_module = bool(info.path)

        component = Component(
            name=info.artifact_id or node.name,
            version=info.version or None,
            type=ComponentType.APPLICATION if is_module else ComponentType.LIBRARY,
            group=info.group_id or None,
            purl=purl,
            bom_ref=OutputFormatter._bom_ref(node),
            tags=['unresolved'] if OutputFormatter._is_unresolved(node) else None
        )
        if not is_module:
            component.scope = OutputFormatter._scopes_to_cyclonedx(scopes)
        return component

    @staticmethod
    def _bom_ref(node: DependencyTree) -> str:
        """Unresolved nodes get their own ref so they never share a component with a resolved one."""
        purl = OutputFormatter._build_purl(node)
        ref = purl.to_string() if purl is not None else node.general_info.component_id or node.name
        if OutputFormatter._is_unresolved(node):
            ref += UNRESOLVED_REF_QUALIFIER
        return ref

    @staticmethod
    def _is_unresolved(node: DependencyTree) -> bool:
        return node.name.endswith(UNRESOLVED_SUFFIX)

    @staticmethod
    def _build_purl(node: DependencyTree) -> Optional[PackageURL]:
        """Build a Package URL for a node, or None for nodes without coordinates."""
        info = node.general_info
        purl_type = PURL_TYPES.get(info.pkg_type)
        if not purl_type or not info.artifact_id:
            return None

        namespace = info.group_id or None
        name = info.artifact_id
        if purl_type == 'npm' and name.startswith('@') and '/' in name:
            namespace, name = name.split('/', 1)

        return PackageURL(type=purl_type, namespace=namespace, name=name, version=info.version or None)
