import uuid

from shared.helper.HelperConfig import HelperConfig
from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.clients.rag.models.Filter import FilterOp, IndexFilter
from shared.clients.rag.models.VectorRecord import IndexStats, QueryMatch, VectorPayload, VectorRecord
from shared.models.config import EnvConfig


def make_point_id(record_id: str) -> str:
    """Build a deterministic UUID5 point ID for a Qdrant vector.

    Qdrant only accepts unsigned integers or UUIDs as point ids, so the
    logical record id is hashed and kept in the payload as record_id.

    Args:
        record_id (str): Logical record id (e.g. "asset-1_chunk_3").

    Returns:
        str: UUID string usable as a Qdrant point ID.
    """
    return str(uuid.uuid5(uuid.NAMESPACE_OID, record_id))


class RAGClientQdrant(RAGClientInterface):
    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._base_url = self.get_config_val("BASE_URL", default=None, val_type="string")
        self._api_key = self.get_config_val("API_KEY", default="", val_type="string")
        self._collection_name = self.get_config_val("COLLECTION", default=None, val_type="string")

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "Qdrant"

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="BASE_URL", val_type="string", default=None),
            EnvConfig(env_key="API_KEY", val_type="string", default=""),
            EnvConfig(env_key="COLLECTION", val_type="string", default=None)
        ]

    ################ AUTH ##################
    def _get_auth_header(self) -> dict:
        if self._api_key:
            return {"api-key": f"{self._api_key}"}
        else:
            return {}

    ################ ENDPOINTS ##################
    def _get_base_url(self) -> str:
        return self._base_url

    def _get_endpoint_healthcheck(self) -> str:
        return "/healthz"

    def _get_endpoint_scroll(self) -> str:
        return f"/collections/{self._collection_name}/points/scroll"

    def _get_endpoint_points(self) -> str:
        return f"/collections/{self._collection_name}/points"

    def _get_endpoint_delete_points(self) -> str:
        return f"/collections/{self._collection_name}/points/delete"

    def _get_endpoint_search(self) -> str:
        return f"/collections/{self._collection_name}/points/search"

    def _get_endpoint_collection_info(self) -> str:
        return f"/collections/{self._collection_name}"

    def _get_endpoint_check_collection_existence(self) -> str:
        return f"/collections/{self._collection_name}/exists"

    def _get_endpoint_create_collection(self) -> str:
        return f"/collections/{self._collection_name}"

    def _get_endpoint_count(self) -> str:
        return f"/collections/{self._collection_name}/points/count"

    def _get_write_params(self) -> dict:
        return {"wait": "true"}

    ##########################################
    ########### PAYLOAD BUILDER ##############
    ##########################################

    def translate_filter(self, filter: IndexFilter | None) -> dict:
        if filter is None or filter.is_empty():
            return {}
        must: list[dict] = []
        must_not: list[dict] = []
        for predicate in filter.predicates:
            if predicate.op == FilterOp.EQ:
                must.append({"key": predicate.field, "match": {"value": predicate.value}})
            elif predicate.op == FilterOp.NE:
                must_not.append({"key": predicate.field, "match": {"value": predicate.value}})
            elif predicate.op == FilterOp.IN:
                must.append({"key": predicate.field, "match": {"any": list(predicate.value)}})
        translated: dict = {}
        if must:
            translated["must"] = must
        if must_not:
            translated["must_not"] = must_not
        return translated

    def get_scroll_payload(self, filter: IndexFilter | None, with_payload: bool | list | dict, with_vector: bool | list, limit: int | None = None, offset: str | None = None) -> dict:
        payload = {
            "limit": limit,
            "with_payload": with_payload,
            "with_vector": with_vector,
        }
        translated = self.translate_filter(filter)
        if translated:
            payload["filter"] = translated
        if offset is not None:
            payload["offset"] = offset
        return payload

    def get_count_payload(self, filter: IndexFilter | None) -> dict:
        payload: dict = {"exact": True}
        translated = self.translate_filter(filter)
        if translated:
            payload["filter"] = translated
        return payload

    def get_upsert_payload(self, records: list[VectorRecord]) -> dict:
        return {
            "points": [
                {
                    "id": make_point_id(record.id),
                    "vector": record.vector,
                    "payload": record.payload.model_dump(),
                }
                for record in records
            ]
        }

    def get_delete_payload(self, record_ids: list[str]) -> dict:
        return {"points": [make_point_id(record_id) for record_id in record_ids]}

    def get_query_payload(self, vector: list[float], top_k: int, filter: IndexFilter | None, include_metadata: bool) -> dict:
        payload = {
            "vector": vector,
            "limit": top_k,
            "with_payload": include_metadata,
            "with_vector": False,
        }
        translated = self.translate_filter(filter)
        if translated:
            payload["filter"] = translated
        return payload

    def get_fetch_payload(self, record_ids: list[str]) -> dict:
        return {
            "ids": [make_point_id(record_id) for record_id in record_ids],
            "with_payload": True,
            "with_vector": True,
        }

    ##########################################
    ########### RESPONSE PARSER ##############
    ##########################################

    def extract_scroll_content(self, raw_response: dict) -> dict:
        result = raw_response.get("result", {})
        return {
            "result": result.get("points", []),
            "status": raw_response.get("status", "ok"),
            "time": raw_response.get("time", 0),
        }

    def extract_next_page_offset(self, raw_response: dict) -> str | None:
        offset = raw_response.get("result", {}).get("next_page_offset")
        return str(offset) if offset is not None else None

    def extract_query_matches(self, raw_response: dict) -> list[QueryMatch]:
        matches: list[QueryMatch] = []
        for point in raw_response.get("result", []) or []:
            payload = point.get("payload") or {}
            matches.append(QueryMatch(
                id=str(payload.get("record_id") or point.get("id")),
                score=float(point.get("score", 0.0)),
                metadata=payload,
            ))
        return matches

    def extract_records(self, raw_response: dict) -> list[VectorRecord]:
        records: list[VectorRecord] = []
        for point in raw_response.get("result", []) or []:
            payload = point.get("payload") or {}
            vector = point.get("vector") or []
            # named vectors come back as a dict
            if isinstance(vector, dict):
                vector = next(iter(vector.values()), [])
            records.append(VectorRecord(
                id=str(payload.get("record_id") or point.get("id")),
                vector=vector,
                payload=VectorPayload(**payload),
            ))
        return records

    def extract_record_id(self, point: dict) -> str | None:
        return (point.get("payload") or {}).get("record_id")

    def extract_stats(self, raw_response: dict) -> IndexStats:
        result = raw_response.get("result", {}) or {}
        vectors_config = result.get("config", {}).get("params", {}).get("vectors", {}) or {}
        dimension = vectors_config.get("size")
        if dimension is None and vectors_config:
            # named vectors: take the first one
            first = next(iter(vectors_config.values()))
            dimension = first.get("size") if isinstance(first, dict) else None
        return IndexStats(
            total_vectors=int(result.get("points_count") or 0),
            dimension=dimension,
        )
