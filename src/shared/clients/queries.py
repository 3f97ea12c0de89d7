"""Google Ads query templates.

Placeholders use ``<name>`` and are filled with ``render_query``.
"""

from __future__ import annotations

from textwrap import dedent

AD_GROUPS = dedent(
    """
    SELECT ad_group.name, ad_group.id, ad_group.resource_name, customer.id
    FROM ad_group
    WHERE campaign.id IN (<campaign_ids>) AND ad_group.status = 'ENABLED'
    """
).strip()

KEYWORDS_FOR_AD_GROUP = dedent(
    """
    SELECT ad_group_criterion.keyword.text
    FROM ad_group_criterion
    WHERE ad_group.id = <ad_group_id>
      AND ad_group_criterion.status = 'ENABLED'
      AND ad_group_criterion.negative = FALSE
    LIMIT 1000
    """
).strip()

# Assets this system created carry the ad group id as the name prefix.
MANAGED_AD_GROUP_ASSETS = dedent(
    """
    SELECT ad_group.id, ad_group_asset.resource_name, ad_group_asset.asset, ad_group_asset.status, asset.name
    FROM ad_group_asset
    WHERE ad_group_asset.field_type = 'AD_IMAGE'
      AND ad_group_asset.primary_status != 'REMOVED'
      AND ad_group.id = <ad_group_id>
      AND asset.name LIKE '<ad_group_id>|%'
    """
).strip()

ALL_AD_GROUP_ASSETS = dedent(
    """
    SELECT ad_group.id, ad_group_asset.resource_name, ad_group_asset.asset, asset.name
    FROM ad_group_asset
    WHERE ad_group_asset.field_type = 'AD_IMAGE'
      AND ad_group_asset.primary_status != 'REMOVED'
      AND ad_group.id = <ad_group_id>
    """
).strip()

IMAGE_ASSETS_FOR_AD_GROUP = dedent(
    """
    SELECT asset.resource_name, asset.name
    FROM asset
    WHERE asset.type = 'IMAGE' AND asset.name LIKE '<ad_group_id>|%'
    """
).strip()


# Campaigns already in a running experiment cannot get another one.
EXPERIMENT_ARMS = dedent(
    """
    SELECT experiment_arm.campaigns
    FROM experiment_arm
    WHERE experiment.status = 'ENABLED'
    """
).strip()

# Draft campaigns created by an experiment arm are only visible with include_drafts.
AD_GROUP_ASSETS_FOR_CAMPAIGN = dedent(
    """
    SELECT ad_group_asset.resource_name, ad_group_asset.asset, campaign.id
    FROM ad_group_asset
    WHERE ad_group_asset.field_type = 'AD_IMAGE'
      AND ad_group_asset.primary_status != 'REMOVED'
      AND campaign.id = <campaign_id>
    PARAMETERS include_drafts=true
    """
).strip()


def render_query(template: str, **values: object) -> str:
    query = template
    for name, value in values.items():
        query = query.replace(f"<{name}>", str(value))
    return query
