import logging

from elasticsearch import BadRequestError

logger = logging.getLogger(__name__)

SCHEMA_VERSION = "0.1.0"

# Payload fields stay dynamic; only the fields the store itself reads are typed.
INDEX_PROPERTIES = {
    "timestamp": {"type": "long"},
    "cookie": {
        "properties": {
            "expires": {"type": "date"},
            "originalMaxAge": {"type": "long"},
        }
    },
}


def build_mapping(type_name: str) -> dict:
    """Index mapping carrying the record category in ``_meta``."""
    return {
        "_meta": {"category": type_name, "schema_version": SCHEMA_VERSION},
        "dynamic": True,
        "properties": INDEX_PROPERTIES,
    }


async def init_index(client, settings) -> dict:
    """Create the session index if it does not exist yet."""
    index = settings.es_index
    try:
        await client.indices.create(index=index, mappings=build_mapping(settings.es_type_name))
    except BadRequestError as e:
        if e.error == "resource_already_exists_exception":
            logger.debug("Index %s already exists", index)
            return {"index": index, "created": False}
        raise
    logger.info("Created index %s", index)
    return {"index": index, "created": True}


async def check_index_exists(client, index: str) -> bool:
    return bool(await client.indices.exists(index=index))


async def get_schema_version(client, index: str) -> str:
    """Read the schema version from the index ``_meta``."""
    try:
        resp = await client.indices.get_mapping(index=index)
        meta = resp[index]["mappings"].get("_meta", {})
        return meta.get("schema_version", "unknown")
    except Exception:
        return "unknown"
