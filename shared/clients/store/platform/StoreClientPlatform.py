from datetime import datetime
from urllib.parse import urlparse, parse_qs

from shared.clients.store.StoreClientInterface import StoreClientInterface
from shared.clients.store.models.Asset import Asset, AssetMetadata, AssetSection, AssetTable, AssetType, AssetsListResponse
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig


class StoreClientPlatform(StoreClientInterface):
    """Entity store client for the content platform's REST API (camelCase JSON)."""

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._base_url = self.get_config_val("BASE_URL", default=None, val_type="string")
        self._api_key = self.get_config_val("API_KEY", default="", val_type="string")

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "Platform"

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="BASE_URL", val_type="string", default=None),
            EnvConfig(env_key="API_KEY", val_type="string", default="")
        ]

    ################ AUTH ##################
    def _get_auth_header(self) -> dict:
        if self._api_key:
            return {"Authorization": f"Bearer {self._api_key}"}
        else:
            return {}

    ################ ENDPOINTS ##################
    def _get_base_url(self) -> str:
        return self._base_url

    def _get_endpoint_healthcheck(self) -> str:
        return "/api/health"

    def _get_endpoint_assets(self, page: int = 1, page_size: int = 100, unindexed_only: bool = False) -> str:
        plain_url = f"/api/assets?page={page}&page_size={page_size}"
        if unindexed_only:
            plain_url += "&indexed=false"
        return plain_url

    def _get_endpoint_asset_details(self, asset_id: str) -> str:
        return f"/api/assets/{asset_id}"

    def _get_endpoint_mark_indexed(self, asset_id: str) -> str:
        return f"/api/assets/{asset_id}/index-status"

    ################ PAYLOAD BUILDER ##################
    def get_mark_indexed_payload(self, indexed: bool, indexed_at: datetime | None) -> dict:
        return {
            "indexed": indexed,
            "lastIndexedAt": indexed_at.isoformat() if indexed_at else None,
        }

    ##########################################
    ########### RESPONSE PARSER ##############
    ##########################################

    ############### LIST RESPONSES ###############
    def _parse_endpoint_assets(self, response: dict, requested_page_size: int | None = None) -> AssetsListResponse:
        meta = self._parse_listing_meta(response)
        assets = [self._parse_endpoint_asset(item) for item in response.get("results", [])]

        page_len = requested_page_size or len(assets)
        overall = meta["overall_results_count"]
        return AssetsListResponse(
            engine=self._get_engine_name(),
            assets=assets,
            currentPage=meta["current_page"],
            nextPage=meta["next_page"],
            overallCount=overall,
            lastPage=overall // page_len + (1 if overall % page_len > 0 else 0) if overall and page_len else None,
        )

    def _parse_listing_meta(self, listing_response: dict) -> dict:
        """
        Parse the metadata from a listing response, including pagination details.

        Args:
            listing_response (dict): The raw response from the listing endpoint.

        Returns:
            dict: current_page, next_page and overall_results_count.
        """
        next_url = listing_response.get("next")
        next_page: int | None = None
        if next_url:
            page_values = parse_qs(urlparse(next_url).query).get("page", [])
            if page_values and page_values[0].isdigit():
                next_page = int(page_values[0])
        return {
            "current_page": next_page - 1 if next_page else 1,
            "next_page": next_page,
            "overall_results_count": listing_response.get("count"),
        }

    ############### GET RESPONSES ###############
    def _parse_endpoint_asset(self, response: dict) -> Asset:
        raw_type = str(response.get("type") or "other").lower()
        asset_type = raw_type if raw_type in {t.value for t in AssetType} else AssetType.OTHER.value

        raw_table = response.get("table")
        table = AssetTable(
            headers=[str(h) for h in raw_table.get("headers", [])],
            rows=raw_table.get("rows", []),
        ) if raw_table else None

        return Asset(
            engine=self._get_engine_name(),
            id=str(response.get("id") or response.get("_id")),
            owner_id=str(response.get("ownerId") or response.get("userId") or ""),
            name=response.get("name"),
            original_name=response.get("originalName"),
            type=asset_type,
            mime_type=response.get("mimeType"),
            tags=response.get("tags") or [],
            folder_id=response.get("folderId"),
            text=response.get("extractedText") or response.get("content"),
            sections=[
                AssetSection(
                    title=s.get("title") or "",
                    content=s.get("content") or "",
                    page=s.get("page"),
                    level=s.get("level") or 1,
                )
                for s in response.get("sections") or []
            ],
            table=table,
            metadata=self._parse_metadata(response.get("metadata") or {}),
            indexed=bool(response.get("indexed", False)),
            last_indexed_at=self._parse_datetime(response.get("lastIndexedAt")),
            created_at=self._parse_datetime(response.get("createdAt")),
        )

    def _parse_metadata(self, metadata: dict) -> AssetMetadata:
        return AssetMetadata(
            description=metadata.get("description"),
            alt=metadata.get("alt"),
            keywords=metadata.get("keywords") or [],
            title=metadata.get("title"),
            author=metadata.get("author"),
            subject=metadata.get("subject"),
            ai_description=metadata.get("aiDescription"),
            detected_objects=metadata.get("detectedObjects") or [],
            dominant_colors=metadata.get("dominantColors") or [],
            extracted_text=metadata.get("extractedText"),
            visual_themes=metadata.get("visualThemes") or [],
            mood=metadata.get("mood"),
            style=metadata.get("style"),
            categories=metadata.get("categories") or [],
            composition=metadata.get("composition"),
            lighting=metadata.get("lighting"),
            setting=metadata.get("setting"),
        )

    def _parse_datetime(self, value: str | None) -> datetime | None:
        if not value:
            return None
        try:
            return datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            self.logging.warning("Could not parse datetime value '%s' from %s", value, self._get_engine_name())
            return None
