from abc import abstractmethod
from datetime import datetime

from shared.helper.HelperConfig import HelperConfig
from shared.clients.ClientInterface import ClientInterface
from shared.clients.store.models.Asset import Asset, AssetsListResponse


class StoreClientInterface(ClientInterface):
    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self.page_size = int(helper_config.get_number_val("STORE_PAGE_SIZE", default=200))

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_client_type(self) -> str:
        """
        Returns the type of the client. E.g. "store"
        """
        return "store"

    ################ ENDPOINTS ##################
    @abstractmethod
    def _get_endpoint_assets(self, page: int = 1, page_size: int = 100, unindexed_only: bool = False) -> str:
        """
        Returns the endpoint path for asset listing requests.

        Args:
            page (int): The page number for paginated asset listing.
            page_size (int): The number of assets per page.
            unindexed_only (bool): Restrict the listing to assets without the indexed flag.

        Returns:
            str: The endpoint path for asset listing requests (e.g. "/api/assets?page=1")
        """
        pass

    @abstractmethod
    def _get_endpoint_asset_details(self, asset_id: str) -> str:
        """
        Returns the endpoint path for a single asset (e.g. "/api/assets/{id}").
        """
        pass

    @abstractmethod
    def _get_endpoint_mark_indexed(self, asset_id: str) -> str:
        """
        Returns the endpoint path used to update the indexed flag of an asset.
        """
        pass

    ################ PAYLOAD BUILDER ##################
    @abstractmethod
    def get_mark_indexed_payload(self, indexed: bool, indexed_at: datetime | None) -> dict:
        """
        Builds the request body that sets the indexed flag and timestamp of an asset.
        """
        pass

    ##########################################
    ########### RESPONSE PARSER ##############
    ##########################################

    @abstractmethod
    def _parse_endpoint_assets(self, response: dict, requested_page_size: int | None = None) -> AssetsListResponse:
        """
        Parses a raw listing response into an AssetsListResponse.
        """
        pass

    @abstractmethod
    def _parse_endpoint_asset(self, response: dict) -> Asset:
        """
        Parses a single raw asset into an Asset.
        """
        pass

    ##########################################
    ############### REQUESTS #################
    ##########################################

    ############# LISTING REQUESTS ##############
    async def do_fetch_assets(self, unindexed_only: bool = False) -> list[Asset]:
        """
        Fetches all assets from the store backend, following pagination.

        Args:
            unindexed_only (bool): Only fetch assets lacking the indexed flag.

        Returns:
            list[Asset]: The fetched assets.

        Raises:
            Exception: If a page request fails.
        """
        assets: list[Asset] = []
        page = 1
        while True:
            resp = await self.do_request(
                method="GET",
                endpoint=self._get_endpoint_assets(page=page, page_size=self.page_size, unindexed_only=unindexed_only),
                raise_on_error=True,
            )
            list_response = self._parse_endpoint_assets(resp.json(), requested_page_size=self.page_size)
            assets.extend(list_response.assets)
            self.logging.info(
                "Fetched assets page %d of %s from %s, total assets so far: %d of %s",
                page, list_response.lastPage, self._get_engine_name(), len(assets), list_response.overallCount,
            )
            next_page = list_response.nextPage
            if not next_page or next_page <= page:
                break
            page = next_page
        return assets

    async def do_fetch_unindexed_assets(self) -> list[Asset]:
        assets = await self.do_fetch_assets(unindexed_only=True)
        # the backend filter is advisory, the flag is checked again here
        return [asset for asset in assets if not asset.indexed]

    async def do_fetch_all_assets(self) -> list[Asset]:
        return await self.do_fetch_assets(unindexed_only=False)

    ############# GET REQUESTS ##############
    async def do_fetch_asset(self, asset_id: str) -> Asset | None:
        """
        Fetches a single asset from the store backend.

        Args:
            asset_id (str): The ID of the asset to fetch.

        Returns:
            Asset | None: The asset, or None if the store does not know it.

        Raises:
            Exception: If the request fails with anything other than 404.
        """
        resp = await self.do_request(method="GET", endpoint=self._get_endpoint_asset_details(asset_id))
        if resp.status_code == 404:
            return None
        if resp.status_code >= 300:
            self.logging.error(
                "Fetching asset %s failed with status %d: %s", asset_id, resp.status_code, resp.text[:500]
            )
            raise Exception(f"Fetching asset {asset_id} failed with status {resp.status_code}")
        return self._parse_endpoint_asset(resp.json())

    ############# UPDATE REQUESTS ##############
    async def do_mark_indexed(self, asset_id: str, indexed_at: datetime | None, indexed: bool = True) -> None:
        """
        Sets the indexed flag and last-indexed timestamp of an asset.

        Args:
            asset_id (str): The ID of the asset.
            indexed_at (datetime | None): When the asset was indexed.
            indexed (bool): The new value of the indexed flag.
        """
        await self.do_request(
            method="PATCH",
            endpoint=self._get_endpoint_mark_indexed(asset_id),
            json=self.get_mark_indexed_payload(indexed, indexed_at),
            raise_on_error=True,
        )
