"""
Data Transfer Objects (DTOs).
Used for passing registry definitions between modules and the database layer.
"""
from dataclasses import dataclass, field
from typing import Optional, List, Dict, Any


@dataclass
class MenuItemDTO:
    """Menu entry registered by a module"""
    label: str = ""
    route: str = ""
    icon: Optional[str] = None
    order: int = 0
    parent: Optional[str] = None
    group: str = "Main"
    permission: Optional[str] = None
    module: Optional[str] = None


@dataclass
class CategoryDTO:
    """Category registered by a module"""
    module: str = ""
    name: str = ""
    slug: str = ""
    type: str = ""
    color: Optional[str] = None
    description: Optional[str] = None
    parent_slug: Optional[str] = None

    @property
    def key(self) -> str:
        return f"{self.type}:{self.slug}"


@dataclass
class SettingDTO:
    """Setting registered by a module"""
    module: str = ""
    group: str = ""
    key: str = ""
    value: Any = None
    type: str = "text"
    label: Optional[str] = None
    is_system: bool = False


@dataclass
class PermissionDTO:
    """Permission registered by a module, name is module-prefixed"""
    module: str = ""
    name: str = ""

    @property
    def codename(self) -> str:
        return self.name.split('.', 1)[1]


@dataclass
class RoleDTO:
    """Role registered by a module"""
    module: str = ""
    name: str = ""
    permissions: List[str] = field(default_factory=list)
    meta: Dict[str, Any] = field(default_factory=dict)
