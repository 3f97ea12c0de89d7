"""In-memory stand-ins for the ads, storage and model clients."""

import json

from src.shared.clients.google_ads import AdGroup, AdGroupAsset, ImageAsset
from src.shared.clients.image_storage import StoredImage, image_folder

CUSTOMER_ID = "1234567890"


def ad_group(ad_group_id, name):
    return AdGroup(
        id=str(ad_group_id),
        name=name,
        resource_name=f"customers/{CUSTOMER_ID}/adGroups/{ad_group_id}",
        customer_id=CUSTOMER_ID,
    )


class FakeAdsClient:
    def __init__(self, ad_groups=(), keywords=None):
        self.customer_id = CUSTOMER_ID
        self.ad_groups = list(ad_groups)
        self.keywords = dict(keywords or {})
        self.library = {}
        self.links = {}
        self.uploads = []
        self.calls = []
        self.experiment_campaigns = set()
        self.campaign_links = {}
        self._next_id = 100

    def _resource(self, kind):
        self._next_id += 1
        return f"customers/{CUSTOMER_ID}/{kind}/{self._next_id}"

    def add_library_asset(self, name):
        resource_name = self._resource("assets")
        self.library[name] = resource_name
        return resource_name

    def add_link(self, ad_group_id, asset_name, status="ENABLED"):
        asset = self.library.get(asset_name) or self.add_library_asset(asset_name)
        link = AdGroupAsset(
            resource_name=self._resource("adGroupAssets"),
            asset_resource_name=asset,
            asset_name=asset_name,
            status=status,
        )
        self.links.setdefault(str(ad_group_id), []).append(link)
        return link

    def get_ad_groups(self, campaign_ids):
        self.calls.append(("get_ad_groups", list(campaign_ids)))
        return list(self.ad_groups)

    def get_keywords(self, ad_group_id):
        return list(self.keywords.get(ad_group_id, []))

    def get_image_assets(self, ad_group_id):
        prefix = f"{ad_group_id}|"
        return [
            ImageAsset(name=name, resource_name=resource_name)
            for name, resource_name in self.library.items()
            if name.startswith(prefix)
        ]

    def get_all_ad_group_assets(self, ad_group_id):
        return list(self.links.get(str(ad_group_id), []))

    def get_managed_ad_group_assets(self, ad_group_id):
        prefix = f"{ad_group_id}|"
        return [link for link in self.get_all_ad_group_assets(ad_group_id) if link.asset_name.startswith(prefix)]

    def upload_image_assets(self, images):
        for name, content in images:
            self.uploads.append((name, content))
            self.add_library_asset(name)
        return {}

    def link_assets(self, ad_group_resource_name, asset_resource_names):
        ad_group_id = ad_group_resource_name.rsplit("/", 1)[-1]
        names = {resource: name for name, resource in self.library.items()}
        self.calls.append(("link_assets", ad_group_resource_name, list(asset_resource_names)))
        for resource in asset_resource_names:
            self.add_link(ad_group_id, names[resource])
        return {}

    def unlink_assets(self, resource_names):
        doomed = set(resource_names)
        self.calls.append(("unlink_assets", sorted(doomed)))
        for ad_group_id, links in self.links.items():
            self.links[ad_group_id] = [link for link in links if link.resource_name not in doomed]
        return {}

    def pause_assets(self, resource_names):
        paused = set(resource_names)
        self.calls.append(("pause_assets", list(resource_names)))
        for ad_group_id, links in self.links.items():
            self.links[ad_group_id] = [
                AdGroupAsset(link.resource_name, link.asset_resource_name, link.asset_name, "PAUSED")
                if link.resource_name in paused
                else link
                for link in links
            ]
        return {}


    def campaigns_with_experiments(self):
        return set(self.experiment_campaigns)

    def create_experiment(self, name):
        experiment = self._resource("experiments")
        self.calls.append(("create_experiment", name))
        return experiment

    def create_experiment_arms(self, campaign_id, experiment):
        self.calls.append(("create_experiment_arms", campaign_id, experiment))
        draft = f"customers/{CUSTOMER_ID}/campaigns/{campaign_id}0"
        return [
            {"experimentArm": {"resourceName": self._resource("experimentArms"), "control": True}},
            {"experimentArm": {"resourceName": self._resource("experimentArms"), "inDesignCampaigns": [draft]}},
        ]

    def get_campaign_ad_group_assets(self, campaign_resource_name):
        return list(self.campaign_links.get(campaign_resource_name.rsplit("/", 1)[-1], []))

    def schedule_experiment(self, experiment):
        self.calls.append(("schedule_experiment", experiment))
        return {}

class FakeStorage:
    """Flat path -> bytes mapping with the ImageStorage interface."""

    bucket_name = "creatives"

    def __init__(self):
        self.files = {}
        self.moves = []

    def put(self, account_id, ad_group_id, directory, file_name, content=b"png"):
        self.files[f"{image_folder(account_id, ad_group_id, directory)}/{file_name}"] = content

    def names(self, account_id, ad_group_id, directory):
        return sorted(image.name for image in self.list_images(account_id, ad_group_id, [directory]))

    def gcs_uri(self, path):
        return f"gs://{self.bucket_name}/{path}"

    def list_images(self, account_id, ad_group_id, directories):
        images = []
        for directory in directories:
            if not directory:
                continue
            prefix = image_folder(account_id, ad_group_id, directory) + "/"
            for path in sorted(self.files):
                file_name = path[len(prefix):] if path.startswith(prefix) else ""
                if file_name and "/" not in file_name and not file_name.endswith(".json"):
                    images.append(StoredImage(name=file_name, path=path))
        return images

    def count_images(self, account_id, ad_group_id, directories):
        return len(self.list_images(account_id, ad_group_id, directories))

    def upload_image(self, account_id, ad_group_id, directory, file_name, content, content_type="image/png"):
        self.put(account_id, ad_group_id, directory, file_name, content)
        return f"{image_folder(account_id, ad_group_id, directory)}/{file_name}"

    def download(self, path):
        return self.files[path]

    def upload_json(self, path, payload):
        self.files[path] = json.dumps(payload)
        return path

    def read_json(self, path):
        return json.loads(self.files[path])

    def move_image(self, account_id, ad_group_id, file_name, from_directory, to_directory):
        source = f"{image_folder(account_id, ad_group_id, from_directory)}/{file_name}"
        if source not in self.files:
            return None
        destination = f"{image_folder(account_id, ad_group_id, to_directory)}/{file_name}"
        self.files[destination] = self.files.pop(source)
        self.moves.append((source, destination))
        return destination


class FakeVertex:
    """Answers model calls from callables so tests can script failures."""

    def __init__(self, images=None, text=None):
        self.images = images or (lambda prompt, count: [f"{prompt}#{i}".encode() for i in range(count)])
        self.text = text or (lambda prompt, image_uri: "")
        self.image_calls = []
        self.text_calls = []

    def generate_images(self, prompt, sample_count=4):
        self.image_calls.append((prompt, sample_count))
        return self.images(prompt, sample_count)

    def generate_text(self, text, *, image=None, image_uri=None, mime_type="image/png"):
        self.text_calls.append((text, image_uri))
        return self.text(text, image_uri)
