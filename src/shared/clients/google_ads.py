"""Google Ads REST client covering the calls the creative jobs need."""

from __future__ import annotations

import base64
import json
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Set, Tuple

import httpx

from src.shared.batch.errors import AuthenticationError, PlatformQueryError

from . import queries
from .search import collect_search_results

logger = logging.getLogger(__name__)

API_VERSION = "v17"
BASE_URL = f"https://googleads.googleapis.com/{API_VERSION}"
DEFAULT_TIMEOUT = 60.0
EXPERIMENT_SUFFIX = "[Creative Experiment]"

TokenProvider = Callable[[], str]


def resource_id(resource_name: str) -> str:
    """Last path segment of a resource name such as ``customers/1/campaigns/42``."""
    return str(resource_name).rsplit("/", 1)[-1]


@dataclass(frozen=True)
class AdGroup:
    id: str
    name: str
    resource_name: str
    customer_id: str


@dataclass(frozen=True)
class AdGroupAsset:
    """An image asset linked to an ad group."""

    resource_name: str
    asset_resource_name: str
    asset_name: str
    status: Optional[str] = None


@dataclass(frozen=True)
class ImageAsset:
    """An image asset in the account's asset library."""

    name: str
    resource_name: str


class GoogleAdsClient:
    """Thin wrapper over the Google Ads REST interface.

    Example:
        client = GoogleAdsClient(
            developer_token="...",
            customer_id="1234567890",
            token_provider=lambda: access_token,
        )
        ad_groups = client.get_ad_groups(["111", "222"])
    """

    def __init__(
        self,
        *,
        developer_token: str,
        customer_id: str,
        token_provider: TokenProvider,
        login_customer_id: Optional[str] = None,
        http_client: Optional[httpx.Client] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        if not developer_token or not customer_id:
            raise ValueError("developer_token and customer_id are required")
        self.developer_token = developer_token
        self.customer_id = str(customer_id).replace("-", "")
        self.login_customer_id = login_customer_id.replace("-", "") if login_customer_id else None
        self.token_provider = token_provider
        self._http = http_client or httpx.Client(timeout=timeout)
        self._base_path = f"{BASE_URL}/customers/{self.customer_id}"

    def _headers(self) -> Dict[str, str]:
        headers = {
            "Authorization": f"Bearer {self.token_provider()}",
            "developer-token": self.developer_token,
            "Content-Type": "application/json",
        }
        if self.login_customer_id:
            headers["login-customer-id"] = self.login_customer_id
        return headers

    def _post(self, path: str, body: Mapping[str, Any]) -> Dict[str, Any]:
        response = self._http.post(f"{self._base_path}{path}", json=dict(body), headers=self._headers())
        if response.status_code == 401:
            raise AuthenticationError(f"Google Ads rejected the credentials: {response.text[:200]}")
        try:
            result = response.json()
        except json.JSONDecodeError:
            raise PlatformQueryError(
                f"Unknown Google Ads API error (HTTP {response.status_code}): {response.text[:200]}"
            ) from None
        if not isinstance(result, dict):
            raise PlatformQueryError(f"Unexpected Google Ads response for {path}: {result!r}")
        return result

    def _fetch_page(self, query: str, page_token: Optional[str]) -> Dict[str, Any]:
        body: Dict[str, Any] = {"query": query}
        if page_token:
            body["pageToken"] = page_token
        return self._post("/googleAds:search", body)

    def search(self, query: str) -> List[Dict[str, Any]]:
        """Run a query and return the rows of every page."""
        return collect_search_results(query, self._fetch_page)

    def _mutate(self, path: str, body: Mapping[str, Any]) -> Dict[str, Any]:
        result = self._post(path, body)
        if result.get("error") is not None:
            raise PlatformQueryError(f"Mutation {path} failed: {result['error']}", payload=result["error"])
        return result

    def get_ad_groups(self, campaign_ids: Sequence[str]) -> List[AdGroup]:
        """Enabled ad groups of the given campaigns, in search order."""
        if not campaign_ids:
            raise ValueError("At least one campaign id is required")
        query = queries.render_query(queries.AD_GROUPS, campaign_ids=", ".join(campaign_ids))
        ad_groups = []
        for row in self.search(query):
            ad_group = row.get("adGroup", {})
            ad_groups.append(
                AdGroup(
                    id=str(ad_group.get("id")),
                    name=ad_group.get("name", ""),
                    resource_name=ad_group.get("resourceName")
                    or f"customers/{self.customer_id}/adGroups/{ad_group.get('id')}",
                    customer_id=str(row.get("customer", {}).get("id", self.customer_id)),
                )
            )
        return ad_groups

    def get_keywords(self, ad_group_id: str) -> List[str]:
        """Enabled positive keyword texts, de-duplicated in first-seen order."""
        query = queries.render_query(queries.KEYWORDS_FOR_AD_GROUP, ad_group_id=ad_group_id)
        keywords: List[str] = []
        for row in self.search(query):
            text = row.get("adGroupCriterion", {}).get("keyword", {}).get("text")
            if text and text not in keywords:
                keywords.append(text)
        return keywords

    def get_managed_ad_group_assets(self, ad_group_id: str) -> List[AdGroupAsset]:
        query = queries.render_query(queries.MANAGED_AD_GROUP_ASSETS, ad_group_id=ad_group_id)
        return [self._to_ad_group_asset(row) for row in self.search(query)]

    def get_all_ad_group_assets(self, ad_group_id: str) -> List[AdGroupAsset]:
        query = queries.render_query(queries.ALL_AD_GROUP_ASSETS, ad_group_id=ad_group_id)
        return [self._to_ad_group_asset(row) for row in self.search(query)]

    def get_image_assets(self, ad_group_id: str) -> List[ImageAsset]:
        """Library image assets whose names belong to ``ad_group_id``."""
        query = queries.render_query(queries.IMAGE_ASSETS_FOR_AD_GROUP, ad_group_id=ad_group_id)
        return [
            ImageAsset(name=row["asset"]["name"], resource_name=row["asset"]["resourceName"])
            for row in self.search(query)
            if row.get("asset", {}).get("name")
        ]

    @staticmethod
    def _to_ad_group_asset(row: Mapping[str, Any]) -> AdGroupAsset:
        link = row.get("adGroupAsset", {})
        return AdGroupAsset(
            resource_name=link.get("resourceName", ""),
            asset_resource_name=link.get("asset", ""),
            asset_name=row.get("asset", {}).get("name", ""),
            status=link.get("status"),
        )

    def upload_image_assets(self, images: Iterable[Tuple[str, bytes]]) -> Dict[str, Any]:
        """Create one image asset per ``(name, content)`` in a single mutate."""
        operations = [
            {
                "assetOperation": {
                    "create": {
                        "type": "IMAGE",
                        "name": name,
                        "imageAsset": {"data": base64.b64encode(content).decode("ascii")},
                    }
                }
            }
            for name, content in images
        ]
        if not operations:
            return {}
        logger.info("Uploading %d images...", len(operations))
        return self._mutate("/googleAds:mutate", {"mutateOperations": operations})

    def link_assets(self, ad_group_resource_name: str, asset_resource_names: Sequence[str]) -> Dict[str, Any]:
        operations = [
            {"create": {"adGroup": ad_group_resource_name, "asset": asset, "fieldType": "AD_IMAGE"}}
            for asset in asset_resource_names
        ]
        if not operations:
            return {}
        return self._mutate("/adGroupAssets:mutate", {"operations": operations})

    def unlink_assets(self, ad_group_asset_resource_names: Sequence[str]) -> Dict[str, Any]:
        operations = [{"remove": name} for name in ad_group_asset_resource_names]
        if not operations:
            return {}
        return self._mutate("/adGroupAssets:mutate", {"operations": operations})

    def pause_assets(self, ad_group_asset_resource_names: Sequence[str]) -> Dict[str, Any]:
        operations = [
            {"updateMask": "status", "update": {"resourceName": name, "status": "PAUSED"}}
            for name in ad_group_asset_resource_names
        ]
        if not operations:
            return {}
        return self._mutate("/adGroupAssets:mutate", {"operations": operations})

    def campaigns_with_experiments(self) -> Set[str]:
        """Ids of campaigns taking part in an enabled experiment."""
        campaign_ids: Set[str] = set()
        for row in self.search(queries.EXPERIMENT_ARMS):
            for resource_name in row.get("experimentArm", {}).get("campaigns", []):
                campaign_ids.add(resource_id(resource_name))
        return campaign_ids

    def create_experiment(self, name: str, suffix: str = EXPERIMENT_SUFFIX) -> str:
        """Create an experiment in SETUP status, without arms; returns its resource name."""
        experiment = {"name": name, "type": "SEARCH_CUSTOM", "suffix": suffix, "status": "SETUP"}
        result = self._mutate("/experiments:mutate", {"operations": [{"create": experiment}]})
        return result["results"][0]["resourceName"]

    def create_experiment_arms(self, campaign_id: str, experiment: str) -> List[Dict[str, Any]]:
        """Create the control arm on ``campaign_id`` and an even-split treatment arm.

        Returns the mutate results; the treatment arm's ``inDesignCampaigns``
        holds the draft copy of the campaign.
        """
        control_arm = {
            "experiment": experiment,
            "name": "Version A (with ad group assets)",
            "control": True,
            "trafficSplit": 50,
            "campaigns": [f"customers/{self.customer_id}/campaigns/{campaign_id}"],
        }
        treatment_arm = {
            "experiment": experiment,
            "name": "Version B (without ad group assets)",
            "control": False,
            "trafficSplit": 50,
        }
        result = self._mutate(
            "/experimentArms:mutate",
            {
                "operations": [{"create": control_arm}, {"create": treatment_arm}],
                "responseContentType": "MUTABLE_RESOURCE",
            },
        )
        return list(result.get("results", []))

    def get_campaign_ad_group_assets(self, campaign_resource_name: str) -> List[AdGroupAsset]:
        """Image assets linked to any ad group of the campaign, drafts included."""
        query = queries.render_query(
            queries.AD_GROUP_ASSETS_FOR_CAMPAIGN, campaign_id=resource_id(campaign_resource_name)
        )
        return [self._to_ad_group_asset(row) for row in self.search(query)]

    def schedule_experiment(self, experiment: str) -> Dict[str, Any]:
        return self._mutate(f"/experiments/{resource_id(experiment)}:scheduleExperiment", {})

    def close(self) -> None:
        self._http.close()
