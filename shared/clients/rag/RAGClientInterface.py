from abc import abstractmethod
from typing import Any
import math

import httpx
from shared.clients.rag.models.Filter import IndexFilter
from shared.clients.rag.models.Scroll import ScrollResult
from shared.clients.rag.models.VectorRecord import IndexStats, QueryMatch, VectorRecord
from shared.clients.ClientInterface import ClientInterface
import json

from shared.helper.HelperConfig import HelperConfig


class RAGClientInterface(ClientInterface):
    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self.max_upsert_batch = int(helper_config.get_number_val("INDEX_UPSERT_BATCH_SIZE", default=100))

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_client_type(self) -> str:
        """
        Returns the type of the client. E.g. "rag"
        """
        return "rag"

    ################ ENDPOINTS ##################
    @abstractmethod
    def _get_endpoint_scroll(self) -> str:
        """
        Returns the endpoint path for scroll requests.

        Returns:
            str: The endpoint path for scroll requests (e.g. "/scroll")
        """
        pass

    @abstractmethod
    def _get_endpoint_points(self) -> str:
        """
        Returns the endpoint path for points upsert and retrieval requests.

        Returns:
            str: The endpoint path for points requests (e.g. "/points")
        """
        pass

    @abstractmethod
    def _get_endpoint_delete_points(self) -> str:
        """
        Returns the endpoint path for deleting points.

        Returns:
            str: The endpoint path (e.g. "/collections/my_col/points/delete")
        """
        pass

    @abstractmethod
    def _get_endpoint_search(self) -> str:
        """
        Returns the endpoint path for similarity search requests.

        Returns:
            str: The endpoint path (e.g. "/collections/my_col/points/search")
        """
        pass

    @abstractmethod
    def _get_endpoint_collection_info(self) -> str:
        """
        Returns the endpoint path that describes the collection (size, dimension).
        """
        pass

    @abstractmethod
    def _get_endpoint_check_collection_existence(self) -> str:
        """
        Returns the endpoint path for collection existence check requests.

        Returns:
            str: The endpoint path for collection existence check requests (e.g. "/existence_check")
        """
        pass

    @abstractmethod
    def _get_endpoint_create_collection(self) -> str:
        """
        Returns the endpoint path for create collection requests.

        Returns:
            str: The endpoint path for create collection requests (e.g. "/create_collection")
        """
        pass

    @abstractmethod
    def _get_endpoint_count(self) -> str:
        """Returns the endpoint path for counting points matching a filter.

        Returns:
            str: The endpoint path (e.g. "/collections/my_col/points/count")
        """
        pass

    def _get_write_params(self) -> dict:
        """
        Returns query parameters sent with every write request. Backends that
        acknowledge writes asynchronously use this to wait for the write.
        """
        return {}

    ##########################################
    ########### PAYLOAD BUILDER ##############
    ##########################################

    @abstractmethod
    def translate_filter(self, filter: IndexFilter | None) -> dict:
        """
        Translates a backend-agnostic IndexFilter into the backend's filter syntax.

        Args:
            filter (IndexFilter | None): The filter to translate.

        Returns:
            dict: The backend filter. Empty dict when there is nothing to filter on.
        """
        pass

    @abstractmethod
    def get_scroll_payload(self, filter: IndexFilter | None, with_payload: bool | list | dict, with_vector: bool | list, limit: int | None = None, offset: str | None = None) -> dict:
        """
        Returns the payload for scroll requests to the RAG backend.

        Args:
            filter (IndexFilter | None): The filter to apply to the scroll request.
            with_payload (bool | list | dict): Whether to include the payload, or which payload fields to include.
            with_vector (bool | list): Whether to include the vector, or which vector fields to include.
            limit (int | None): The maximum number of results to return.
            offset (str | None): Pagination cursor returned by the previous scroll page.
                                 None means start from the beginning.

        Returns:
            dict: The payload for the scroll request.
        """
        pass

    @abstractmethod
    def get_count_payload(self, filter: IndexFilter | None) -> dict:
        """Builds the backend-specific request payload for a point count.

        Args:
            filter (IndexFilter | None): Filter to apply before counting.

        Returns:
            dict: The payload for the count request.
        """
        pass

    @abstractmethod
    def get_upsert_payload(self, records: list[VectorRecord]) -> dict:
        """Builds the backend-specific request payload for an upsert of one batch.

        Args:
            records (list[VectorRecord]): The records to write.

        Returns:
            dict: The payload for the upsert request.
        """
        pass

    @abstractmethod
    def get_delete_payload(self, record_ids: list[str]) -> dict:
        """
        Builds the backend-specific request payload for deleting records by id.

        Args:
            record_ids (list[str]): Logical record ids to delete.

        Returns:
            dict: The payload for the delete request.
        """
        pass

    @abstractmethod
    def get_query_payload(self, vector: list[float], top_k: int, filter: IndexFilter | None, include_metadata: bool) -> dict:
        """
        Builds the backend-specific request payload for a top-k similarity query.

        Args:
            vector (list[float]): The query vector.
            top_k (int): Maximum number of matches.
            filter (IndexFilter | None): Conjunctive metadata filter.
            include_metadata (bool): Whether matches should carry their payload.

        Returns:
            dict: The payload for the search request.
        """
        pass

    @abstractmethod
    def get_fetch_payload(self, record_ids: list[str]) -> dict:
        """
        Builds the backend-specific request payload for retrieving records by id, vectors included.
        """
        pass

    ##########################################
    ########### RESPONSE PARSER ##############
    ##########################################

    @abstractmethod
    def extract_next_page_offset(self, raw_response: dict) -> str | None:
        """
        Extracts the pagination cursor for the next scroll page from a raw response.

        Return None when the backend signals that no further pages exist.

        Args:
            raw_response (dict): The raw JSON response from the scroll endpoint.

        Returns:
            str | None: The cursor for the next page, or None if this was the last page.
        """
        pass

    @abstractmethod
    def extract_scroll_content(self, raw_response: dict) -> dict:
        """
        Extracts the relevant content from a raw scroll response.

        Args:
            raw_response (dict): The raw JSON response from the scroll endpoint.

        Returns:
            dict: A dict with keys "result", "status", "time".
        """
        pass

    @abstractmethod
    def extract_query_matches(self, raw_response: dict) -> list[QueryMatch]:
        """
        Extracts ranked matches from a raw search response, keeping the backend's order.
        """
        pass

    @abstractmethod
    def extract_records(self, raw_response: dict) -> list[VectorRecord]:
        """
        Extracts full records (vector and payload) from a raw retrieval response.
        """
        pass

    @abstractmethod
    def extract_record_id(self, point: dict) -> str | None:
        """
        Extracts the logical record id from a single scrolled point.
        """
        pass

    @abstractmethod
    def extract_stats(self, raw_response: dict) -> IndexStats:
        """
        Extracts vector count and dimension from a raw collection info response.
        """
        pass

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def _do_json_request(self, method: str, endpoint: str, body: dict, params: dict | None = None) -> httpx.Response:
        return await self.do_request(
            method=method,
            content=json.dumps(body),
            endpoint=endpoint,
            params=params,
            additional_headers={"Content-Type": "application/json"},
            raise_on_error=True,
        )

    ################ COLLECTION ##################
    async def do_existence_check(self) -> bool:
        """Check if a collection exists in the rag backend.

        Returns:
            bool: True if the collection exists, False otherwise.
        """
        resp = await self.do_request(method="GET", endpoint=self._get_endpoint_check_collection_existence())
        return bool(resp.json().get("result", {}).get("exists"))

    async def do_create_collection(self, vector_size: int = 768, distance: str = "Cosine") -> httpx.Response:
        """Create a collection in the rag backend.

        Args:
            vector_size (int): The size of the vectors in the collection.
            distance (str): The distance metric for the vectors.

        Returns:
            httpx.Response: The response from the create collection request.
        """
        return await self.do_request(
            method="PUT",
            json={
                "vectors": {
                    "size": vector_size,
                    "distance": distance}},
            endpoint=self._get_endpoint_create_collection(),
            raise_on_error=True)

    async def do_ensure_collection(self, vector_size: int, distance: str = "Cosine") -> bool:
        """Create the collection if it does not exist yet.

        Returns:
            bool: True if the collection was created, False if it already existed.
        """
        if await self.do_existence_check():
            return False
        self.logging.info(
            "Creating collection on %s (size=%d, distance=%s)", self.get_engine_name(), vector_size, distance
        )
        await self.do_create_collection(vector_size=vector_size, distance=distance)
        return True

    async def do_describe_stats(self) -> IndexStats:
        """Return the number of stored vectors and their dimension."""
        resp = await self.do_request(method="GET", endpoint=self._get_endpoint_collection_info(), raise_on_error=True)
        return self.extract_stats(resp.json())

    ################ WRITE ##################
    async def do_upsert(self, record: VectorRecord) -> None:
        """Insert a record or replace the record with the same id."""
        await self.do_upsert_batch([record])

    async def do_upsert_batch(self, records: list[VectorRecord], max_batch: int | None = None) -> int:
        """Upsert records in slices of at most max_batch records per request.

        Args:
            records (list[VectorRecord]): The records to write.
            max_batch (int | None): Slice size. Defaults to INDEX_UPSERT_BATCH_SIZE (100).

        Returns:
            int: The number of records written.
        """
        batch_size = max(1, int(max_batch or self.max_upsert_batch))
        for batch_start in range(0, len(records), batch_size):
            batch = records[batch_start: batch_start + batch_size]
            await self._do_json_request(
                method="PUT",
                endpoint=self._get_endpoint_points(),
                body=self.get_upsert_payload(batch),
                params=self._get_write_params(),
            )
        return len(records)

    async def do_delete_by_id(self, record_id: str) -> None:
        await self.do_delete_many([record_id])

    async def do_delete_many(self, record_ids: list[str]) -> int:
        """Delete records by logical id. Unknown ids are ignored by the backend.

        Returns:
            int: The number of ids sent for deletion.
        """
        if not record_ids:
            return 0
        for batch_start in range(0, len(record_ids), self.max_upsert_batch):
            batch = record_ids[batch_start: batch_start + self.max_upsert_batch]
            await self._do_json_request(
                method="POST",
                endpoint=self._get_endpoint_delete_points(),
                body=self.get_delete_payload(batch),
                params=self._get_write_params(),
            )
        return len(record_ids)

    ################ READ ##################
    async def do_query(self, vector: list[float], top_k: int, filter: IndexFilter | None = None, include_metadata: bool = True) -> list[QueryMatch]:
        """Run a top-k similarity query.

        Args:
            vector (list[float]): The query vector.
            top_k (int): Maximum number of matches.
            filter (IndexFilter | None): Conjunctive metadata filter.
            include_metadata (bool): Whether matches carry their payload.

        Returns:
            list[QueryMatch]: Matches in descending score order.
        """
        resp = await self._do_json_request(
            method="POST",
            endpoint=self._get_endpoint_search(),
            body=self.get_query_payload(vector, top_k, filter, include_metadata),
        )
        return self.extract_query_matches(resp.json())

    async def do_fetch_record(self, record_id: str) -> VectorRecord | None:
        """Fetch a single record with its vector, or None if it does not exist."""
        resp = await self._do_json_request(
            method="POST",
            endpoint=self._get_endpoint_points(),
            body=self.get_fetch_payload([record_id]),
        )
        records = self.extract_records(resp.json())
        return records[0] if records else None

    async def do_find_ids(self, filter: IndexFilter | None) -> list[str]:
        """Return the logical ids of all records matching the filter."""
        scroll_result = await self.do_scroll_all(filter=filter, with_payload=["record_id"], with_vector=False)
        record_ids: list[str] = []
        for point in scroll_result.result:
            record_id = self.extract_record_id(point)
            if record_id is not None:
                record_ids.append(record_id)
        return record_ids

    async def do_scroll(self, filter: IndexFilter | None, with_payload: bool | list | dict, with_vector: bool | list, limit: int | None = None, offset: str | None = None) -> ScrollResult:
        """Scroll a single page from a collection in the RAG backend.

        To retrieve all matching points across an arbitrary number of pages use
        do_scroll_all() instead.

        Args:
            filter (IndexFilter | None): The filter to apply to the scroll request.
            with_payload (bool | list | dict): Whether to include the payload, or which payload fields to include.
            with_vector (bool | list): Whether to include the vector in the scroll request.
            limit (int | None): The maximum number of results to return per page.
            offset (str | None): Pagination cursor from the previous page's next_page_offset.
                                 None starts from the beginning of the collection.

        Returns:
            ScrollResult: The result from the scroll request, including next_page_offset
                          when further pages are available.
        """
        resp = await self._do_json_request(
            method="POST",
            endpoint=self._get_endpoint_scroll(),
            body=self.get_scroll_payload(filter, with_payload, with_vector, limit, offset),
        )
        raw_response = resp.json()
        scroll_content = self.extract_scroll_content(raw_response=raw_response)
        return ScrollResult(
            result=scroll_content.get("result", []),
            status=scroll_content.get("status", "ok"),
            time=scroll_content.get("time", 0),
            next_page_offset=self.extract_next_page_offset(raw_response),
        )

    async def do_count(self, filter: IndexFilter | None) -> int:
        """Count the total number of points matching the given filter.

        Args:
            filter (IndexFilter | None): Filter for the count request.

        Returns:
            int: Total number of matching points.
        """
        resp = await self._do_json_request(
            method="POST",
            endpoint=self._get_endpoint_count(),
            body=self.get_count_payload(filter),
        )
        return resp.json().get("result", {}).get("count", 0)

    async def do_scroll_all(self, filter: IndexFilter | None, with_payload: bool | list | dict, with_vector: bool | list, page_size: int = 1000) -> ScrollResult:
        """Scroll through ALL points matching the filter, paginating automatically.

        Runs a loop driven by next_page_offset until the backend signals there
        are no more pages.

        Args:
            filter (IndexFilter | None): The filter to apply to the scroll request.
            with_payload (bool | list | dict): Whether to include the payload, or which fields.
            with_vector (bool | list): Whether to include the vector in each result point.
            page_size (int): Points per scroll page.

        Returns:
            ScrollResult: All matching points collected across all pages.
                          next_page_offset is always None on the returned result.
        """
        all_points: list[dict[str, Any]] = []
        offset: str | None = None
        page = 1
        total_points = await self.do_count(filter)
        total_pages = math.ceil(total_points / page_size) if total_points > 0 else 1
        while True:
            page_result = await self.do_scroll(
                filter=filter,
                with_payload=with_payload,
                with_vector=with_vector,
                limit=page_size,
                offset=offset,
            )
            all_points.extend(page_result.result)
            self.logging.debug(
                "Fetched RAG points page %d of %d from %s, total points so far: %d of %d",
                page, total_pages, self.get_engine_name(), len(all_points), total_points,
            )
            offset = page_result.next_page_offset
            if not offset:
                break
            page += 1
        return ScrollResult(result=all_points, status="ok", time=0)
