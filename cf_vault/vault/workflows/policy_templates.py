"""Least-privilege policy templates built from the permission group catalog."""
import logging
from dataclasses import dataclass, field
from typing import Iterable, List

from ..domains.errors import RemoteAuthError, UnknownTemplateError
from ..domains.models import RESOURCE_WILDCARD, PermissionGroup, Policy

logger = logging.getLogger(__name__)

TEMPLATE_READ_ONLY = "read-only"
TEMPLATE_WRITE_EVERYTHING = "write-everything"
TEMPLATES = (TEMPLATE_READ_ONLY, TEMPLATE_WRITE_EVERYTHING)

SCOPE_ZONE = "com.cloudflare.api.account.zone"
SCOPE_ACCOUNT = "com.cloudflare.api.account"
SCOPE_USER = "com.cloudflare.api.user"

ACCOUNT_RESOURCE = "com.cloudflare.api.account.*"
ZONE_RESOURCE = "com.cloudflare.api.account.zone.*"
USER_RESOURCE = "com.cloudflare.api.user.{user_id}"

# A minted token holding this could mint further tokens.
RECURSION_GUARD_GROUP = "API Tokens Write"


@dataclass
class PartitionedCatalog:
    """Permission groups split by effect and scope, in catalog order."""
    zone_read: List[PermissionGroup] = field(default_factory=list)
    zone_write: List[PermissionGroup] = field(default_factory=list)
    account_read: List[PermissionGroup] = field(default_factory=list)
    account_write: List[PermissionGroup] = field(default_factory=list)
    user_read: List[PermissionGroup] = field(default_factory=list)
    user_write: List[PermissionGroup] = field(default_factory=list)


def classify_effect(group: PermissionGroup) -> str:
    """
    Classify a group as "read", "write", or "" (neither).

    Relies on the upstream naming convention of a trailing "Read"/"Write".
    """
    if group.name.endswith("Read"):
        return "read"
    if group.name.endswith("Write"):
        return "write"
    return ""


def partition_catalog(groups: Iterable[PermissionGroup]) -> PartitionedCatalog:
    """
    Partition the permission group catalog into effect x scope buckets.

    A group can land in several scope buckets; groups that are neither read
    nor write, and the recursion guard group, are dropped.
    """
    catalog = PartitionedCatalog()
    for group in groups:
        if group.name == RECURSION_GUARD_GROUP:
            logger.debug(f"Skipping '{group.name}' permission group")
            continue

        effect = classify_effect(group)
        if not effect:
            continue

        if SCOPE_ZONE in group.scopes:
            getattr(catalog, f"zone_{effect}").append(group)
        if SCOPE_ACCOUNT in group.scopes:
            getattr(catalog, f"account_{effect}").append(group)
        if SCOPE_USER in group.scopes:
            getattr(catalog, f"user_{effect}").append(group)

    return catalog


def _policy(resource: str, groups: List[PermissionGroup]) -> Policy:
    return Policy(
        effect="allow",
        resources={resource: RESOURCE_WILDCARD},
        # Scopes only matter for partitioning, so they aren't embedded.
        permission_groups=[PermissionGroup(id=g.id, name=g.name) for g in groups],
    )


def generate_policies(template: str, catalog: PartitionedCatalog, user_id: str) -> List[Policy]:
    """
    Build the account, zone and user policies for a template.

    Args:
        template: "read-only" or "write-everything"
        catalog: Output of partition_catalog()
        user_id: ID of the authenticated user, scoping the user policy

    Returns:
        Exactly three policies: account, zone, user

    Raises:
        UnknownTemplateError: If template isn't a known name
    """
    if template == TEMPLATE_READ_ONLY:
        logger.debug("configuring a read-only template")
        account, zone, user = catalog.account_read, catalog.zone_read, catalog.user_read
    elif template == TEMPLATE_WRITE_EVERYTHING:
        logger.debug("configuring a write-everything template")
        account, zone, user = catalog.account_write, catalog.zone_write, catalog.user_write
    else:
        raise UnknownTemplateError(template, TEMPLATES)

    return [
        _policy(ACCOUNT_RESOURCE, account),
        _policy(ZONE_RESOURCE, zone),
        _policy(USER_RESOURCE.format(user_id=user_id), user),
    ]


def build_template_policies(template: str, client) -> List[Policy]:
    """Fetch the live catalog and user ID with `client`, then generate policies."""
    if template not in TEMPLATES:
        raise UnknownTemplateError(template, TEMPLATES)

    # The user policy needs the user ID, so the credentials must be able to
    # read user details before any template can be built.
    try:
        user_id = client.get_user_id()
    except RemoteAuthError as e:
        logger.debug(e)
        raise RemoteAuthError(
            "failed to fetch user ID from the Cloudflare API which is required to generate "
            "the predefined short lived token policies. If you are using API tokens, please "
            "allow the permission to access your user details and try again."
        ) from e

    groups = client.list_permission_groups()
    logger.debug(f"Fetched {len(groups)} permission groups for user {user_id}")
    return generate_policies(template, partition_catalog(groups), user_id)
