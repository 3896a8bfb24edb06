"""Core data models for deptree."""

import weakref
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Set, Tuple

DEFAULT_SCOPE = "None"
UNKNOWN_LICENSE = "Unknown"


@dataclass(frozen=True)
class Scope:
    """Usage classification of a dependency (e.g. prod, dev, compileClasspath)."""

    name: str = DEFAULT_SCOPE

    def __post_init__(self):
        """Map blank or missing labels to the default scope."""
        label = (self.name or "").strip()
        object.__setattr__(self, 'name', label or DEFAULT_SCOPE)

    @property
    def is_default(self) -> bool:
        return self.name == DEFAULT_SCOPE

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class License:
    """License of a dependency. Only the unknown placeholder is set while building trees."""

    name: str = UNKNOWN_LICENSE

    def __str__(self) -> str:
        return self.name


@dataclass
class GeneralInfo:
    """Coordinates of a tree node: group, artifact, version, module path and package type."""

    group_id: str = ""
    artifact_id: str = ""
    version: str = ""
    path: Optional[str] = None  # Only set on module nodes
    pkg_type: str = ""  # gradle, npm
    component_id: Optional[str] = None

    def __post_init__(self):
        if self.component_id is None:
            if self.group_id:
                self.component_id = f"{self.group_id}:{self.artifact_id}:{self.version}"
            else:
                # npm packages have no group
                self.component_id = f"{self.artifact_id}:{self.version}"

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'componentId': self.component_id,
            'groupId': self.group_id,
            'artifactId': self.artifact_id,
            'version': self.version,
            'pkgType': self.pkg_type,
        }
        if self.path:
            data['path'] = self.path
        return data


@dataclass
class DependencyGraphNode:
    """
    One node of a raw per-module dependency graph, as exported by the build tool.

    Graph nodes are transient: they are created by the parser and thrown away
    once the tree builder has turned them into DependencyTree nodes.
    """

    group_id: str
    artifact_id: str
    version: str
    scopes: List[str] = field(default_factory=list)
    unresolved: bool = False
    dependencies: List['DependencyGraphNode'] = field(default_factory=list, repr=False)

    @property
    def key(self) -> Tuple[str, str, str, bool]:
        """Identity of the dependency among its siblings."""
        return (self.group_id, self.artifact_id, self.version, self.unresolved)


@dataclass(eq=False)
class DependencyTree:
    """
    A node in the canonical dependency tree.

    A node owns its children. The parent link is a weak reference used for
    lookups only, so a subtree never keeps its ancestors alive.
    """

    name: str
    general_info: GeneralInfo = field(default_factory=GeneralInfo)
    scopes: Set[Scope] = field(default_factory=lambda: {Scope()})
    licenses: Set[License] = field(default_factory=lambda: {License()})
    children: List['DependencyTree'] = field(default_factory=list, repr=False)

    def __post_init__(self):
        self._parent_ref: Optional[weakref.ReferenceType] = None
        if not self.scopes:
            self.scopes = {Scope()}
        if not self.licenses:
            self.licenses = {License()}
        for child in self.children:
            child.parent = self

    @property
    def parent(self) -> Optional['DependencyTree']:
        if self._parent_ref is None:
            return None
        return self._parent_ref()

    @parent.setter
    def parent(self, node: Optional['DependencyTree']) -> None:
        self._parent_ref = weakref.ref(node) if node is not None else None

    @property
    def is_leaf(self) -> bool:
        return not self.children

    def add(self, child: 'DependencyTree') -> None:
        """Append a child and point its parent link at this node."""
        child.parent = self
        self.children.append(child)

    def walk(self) -> Iterator['DependencyTree']:
        """Iterate over this node and its descendants, depth-first pre-order."""
        stack = [self]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))

    def to_dict(self) -> Dict[str, Any]:
        """Serialize the subtree to plain JSON-compatible data."""
        return {
            'name': self.name,
            'generalInfo': self.general_info.to_dict(),
            'scopes': sorted(scope.name for scope in self.scopes),
            'licenses': sorted(lic.name for lic in self.licenses),
            'children': [child.to_dict() for child in self.children],
        }

    def __eq__(self, other) -> bool:
        """Structural equality. The parent link is not compared."""
        if not isinstance(other, DependencyTree):
            return NotImplemented
        return (
            self.name == other.name
            and self.general_info == other.general_info
            and self.scopes == other.scopes
            and self.licenses == other.licenses
            and self.children == other.children
        )

    __hash__ = None

    def __str__(self) -> str:
        return self.name
