"""Domain models for profiles and their token policies."""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

AUTH_API_KEY = "api_key"
AUTH_API_TOKEN = "api_token"
AUTH_TYPES = (AUTH_API_KEY, AUTH_API_TOKEN)

# Resources map a pattern to this marker; only the keys carry meaning.
RESOURCE_WILDCARD = "*"


@dataclass
class PermissionGroup:
    """Smallest grantable unit of authorization, addressed by ID."""
    id: str
    name: str = ""
    scopes: List[str] = field(default_factory=list)
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        # Scopes are only used for partitioning and never persisted.
        data = dict(self.extra)
        data["id"] = self.id
        if self.name:
            data["name"] = self.name
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PermissionGroup":
        known = {"id", "name", "scopes"}
        return cls(
            id=str(data["id"]),
            name=data.get("name") or "",
            scopes=list(data.get("scopes") or []),
            extra={k: v for k, v in data.items() if k not in known},
        )


@dataclass
class Policy:
    """An allow rule binding permission groups to resource patterns."""
    resources: Dict[str, str]
    permission_groups: List[PermissionGroup]
    effect: str = "allow"
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        data = dict(self.extra)
        data["effect"] = self.effect
        data["resources"] = dict(self.resources)
        data["permission_groups"] = [group.to_dict() for group in self.permission_groups]
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Policy":
        known = {"effect", "resources", "permission_groups"}
        return cls(
            effect=data.get("effect", "allow"),
            resources={str(k): v for k, v in (data.get("resources") or {}).items()},
            permission_groups=[
                PermissionGroup.from_dict(group)
                for group in (data.get("permission_groups") or [])
            ],
            extra={k: v for k, v in data.items() if k not in known},
        )


@dataclass
class Profile:
    """Non-secret description of one credential identity."""
    auth_type: str
    email: str = ""
    session_duration: Optional[str] = None
    policies: List[Policy] = field(default_factory=list)
    # Keys we don't know about, carried through load/save untouched.
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        data = dict(self.extra)
        data["email"] = self.email
        data["auth_type"] = self.auth_type
        if self.session_duration:
            data["session_duration"] = self.session_duration
        if self.policies:
            data["policies"] = [policy.to_dict() for policy in self.policies]
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Profile":
        known = {"email", "auth_type", "session_duration", "policies"}
        return cls(
            email=data.get("email") or "",
            auth_type=data.get("auth_type") or "",
            session_duration=data.get("session_duration") or None,
            policies=[Policy.from_dict(policy) for policy in (data.get("policies") or [])],
            extra={k: v for k, v in data.items() if k not in known},
        )


def secret_key_for(profile_name: str, auth_type: str) -> str:
    """Composite key a profile's secret is stored under."""
    return f"{profile_name}-{auth_type}"
