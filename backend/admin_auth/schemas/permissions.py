"""Permission matrix file schema.

The optional PERMISSIONS_FILE holds a JSON document of this shape:

    {
      "resources": {
        "pages": {"name": "Pages", "description": "...",
                  "actions": {"read": "...", "write": "..."}}
      },
      "roles": {
        "editor": {"description": "...",
                   "permissions": [{"resource": "pages", "action": "write"}]}
      }
    }

Grants are flat and explicit: every (resource, action) a role may perform
is listed. Validation rejects grants that name an unknown resource or an
action the resource does not declare.
"""

from pydantic import BaseModel, ConfigDict, Field, model_validator


class ResourceDefinition(BaseModel):
    """Catalog entry for one resource."""

    model_config = ConfigDict(extra="forbid")

    name: str = Field(min_length=1, max_length=100)
    description: str = Field(default="", max_length=500)
    actions: dict[str, str] = Field(min_length=1)


class PermissionGrant(BaseModel):
    """A single (resource, action) grant."""

    model_config = ConfigDict(extra="forbid")

    resource: str = Field(min_length=1, max_length=64)
    action: str = Field(min_length=1, max_length=64)
    description: str = Field(default="", max_length=500)


class RoleDefinition(BaseModel):
    """Role description and its explicit grants."""

    model_config = ConfigDict(extra="forbid")

    description: str = Field(default="", max_length=500)
    permissions: list[PermissionGrant] = Field(default_factory=list)


class PermissionMatrix(BaseModel):
    """Complete role -> permission configuration."""

    model_config = ConfigDict(extra="forbid")

    version: str = "1.0.0"
    resources: dict[str, ResourceDefinition] = Field(min_length=1)
    roles: dict[str, RoleDefinition] = Field(min_length=1)

    @model_validator(mode="after")
    def check_grants_reference_catalog(self) -> "PermissionMatrix":
        """Every grant must name a declared resource and one of its actions."""
        for role_name, role in self.roles.items():
            for grant in role.permissions:
                resource = self.resources.get(grant.resource)
                if resource is None:
                    msg = f"Role '{role_name}' grants unknown resource '{grant.resource}'"
                    raise ValueError(msg)
                if grant.action not in resource.actions:
                    msg = (
                        f"Role '{role_name}' grants undeclared action "
                        f"'{grant.action}' on '{grant.resource}'"
                    )
                    raise ValueError(msg)
        return self
