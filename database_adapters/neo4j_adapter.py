"""
Neo4j graph database adapter.
Runs Cypher through the async driver and loads graph documents.
"""

import hashlib
import json
import logging
from collections import defaultdict
from typing import Any, Dict, List, Optional, Sequence
from neo4j import AsyncGraphDatabase, Query
from neo4j.exceptions import DriverError, Neo4jError

from . import GraphDatabaseAdapter
from config.settings import settings
from core.errors import UpstreamFailure
from core.graph_document import GraphDocument

logger = logging.getLogger(__name__)

BASE_ENTITY_LABEL = "__Entity__"
SOURCE_LABEL = "Document"

NODE_PROPERTIES_QUERY = """
CALL db.schema.nodeTypeProperties()
YIELD nodeLabels, propertyName, propertyTypes
RETURN nodeLabels, propertyName, propertyTypes
"""

REL_PROPERTIES_QUERY = """
CALL db.schema.relTypeProperties()
YIELD relType, propertyName, propertyTypes
RETURN relType, propertyName, propertyTypes
"""

RELATIONSHIPS_QUERY = """
MATCH (a)-[r]->(b)
WITH DISTINCT labels(a) AS starts, type(r) AS type, labels(b) AS ends
UNWIND starts AS start
UNWIND ends AS end
RETURN DISTINCT start, type, end
"""


def sanitize_label(label: str) -> str:
    return "".join(ch for ch in label if ch.isalnum() or ch == "_")


def sanitize_properties(properties: Dict[str, Any], owner: str) -> Dict[str, Any]:
    """Keep values Neo4j can store; serialize the rest to JSON."""
    props = {}
    for k, v in properties.items():
        # Skip fields that cause Neo4j storage issues
        if k in ["embedding", "embeddings"] or k.startswith("_"):
            logger.debug(f"Skipping field '{k}' for '{owner}' - not compatible with Neo4j")
            continue

        # Only store primitive types or lists of primitive types directly
        if v is None or isinstance(v, (str, int, float, bool)):
            props[k] = v
        elif isinstance(v, list) and all(isinstance(item, (str, int, float, bool)) for item in v):
            props[k] = v
        else:
            try:
                props[k] = json.dumps(v, default=str)
            except (TypeError, ValueError) as e:
                logger.warning(f"Could not serialize field '{k}' for '{owner}': {e}")
                props[k] = str(v)
    return props


class Neo4jGraphAdapter(GraphDatabaseAdapter):
    """Neo4j graph database adapter with Cypher support."""

    def __init__(self, uri: Optional[str] = None, user: Optional[str] = None, password: Optional[str] = None,
                 database: Optional[str] = None, timeout: Optional[float] = None):
        """Initialize Neo4j adapter with settings."""
        self.uri = uri or settings.NEO4J_URI
        self.user = user or settings.NEO4J_USER
        self.password = password or settings.NEO4J_PASSWORD
        self.database = database or settings.NEO4J_DATABASE
        self.timeout = timeout if timeout is not None else settings.NEO4J_TIMEOUT
        self.driver = None
        self.structured_schema: Dict[str, Any] = {}
        self.schema = ""

    async def connect(self) -> bool:
        """Establish connection to Neo4j database."""
        try:
            self.driver = AsyncGraphDatabase.driver(self.uri, auth=(self.user, self.password))
            await self.driver.verify_connectivity()
            logger.info("Successfully connected to Neo4j database")
            return True
        except (Neo4jError, DriverError, ValueError) as e:
            logger.error(f"Neo4j connection failed: {e}")
            self.driver = None
            raise UpstreamFailure(f"Neo4j connection failed: {e}", service="neo4j") from e

    async def close(self):
        """Close the Neo4j driver connection."""
        if self.driver:
            await self.driver.close()
            self.driver = None
            logger.info("Disconnected from Neo4j database")

    async def query(self, query: str, params: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        """Execute Cypher query and return results."""
        if not self.driver:
            raise UpstreamFailure("No active Neo4j connection", service="neo4j")

        try:
            async with self.driver.session(database=self.database) as session:
                result = await session.run(Query(query, timeout=self.timeout), params or {})
                records = await result.data()
                logger.debug(f"Query executed successfully, returned {len(records)} records")
                return records
        except (Neo4jError, DriverError) as e:
            logger.error(f"Error executing Cypher query: {e}")
            raise UpstreamFailure(f"Error executing Cypher query: {e}", service="neo4j",
                                  status=getattr(e, "code", None)) from e

    async def refresh_schema(self) -> None:
        """Reload node properties, relationship properties, patterns and constraints."""
        node_props: Dict[str, List[Dict[str, Any]]] = defaultdict(list)
        for record in await self.query(NODE_PROPERTIES_QUERY):
            if record.get("propertyName") is None:
                continue
            for label in record["nodeLabels"]:
                if label == BASE_ENTITY_LABEL:
                    continue
                node_props[label].append({"property": record["propertyName"],
                                          "type": "|".join(record.get("propertyTypes") or [])})

        rel_props: Dict[str, List[Dict[str, Any]]] = defaultdict(list)
        for record in await self.query(REL_PROPERTIES_QUERY):
            if record.get("propertyName") is None:
                continue
            rel_type = record["relType"].lstrip(":").strip("`")
            rel_props[rel_type].append({"property": record["propertyName"],
                                        "type": "|".join(record.get("propertyTypes") or [])})

        relationships = [
            record for record in await self.query(RELATIONSHIPS_QUERY)
            if BASE_ENTITY_LABEL not in (record["start"], record["end"])
        ]

        constraints = await self.query("SHOW CONSTRAINTS")

        self.structured_schema = {
            "node_props": dict(node_props),
            "rel_props": dict(rel_props),
            "relationships": relationships,
            "metadata": {"constraint": constraints},
        }
        self.schema = self._format_schema(self.structured_schema)

    @staticmethod
    def _format_schema(structured_schema: Dict[str, Any]) -> str:
        def props_text(props: Dict[str, List[Dict[str, Any]]]) -> str:
            entries = []
            for name, plist in props.items():
                fields = ", ".join(f"{p['property']}: {p['type']}" for p in plist)
                entries.append(f"{name} {{{fields}}}")
            return ", ".join(entries)

        relationships = ", ".join(
            f"(:{r['start']})-[:{r['type']}]->(:{r['end']})" for r in structured_schema["relationships"]
        )
        return "\n".join([
            "Node properties are the following:",
            props_text(structured_schema["node_props"]),
            "Relationship properties are the following:",
            props_text(structured_schema["rel_props"]),
            "The relationships are the following:",
            relationships,
        ])

    def get_schema(self) -> str:
        return self.schema

    def get_structured_schema(self) -> Dict[str, Any]:
        return self.structured_schema

    async def create_constraints(self) -> None:
        """Create the uniqueness constraint on the base entity label."""
        await self.query(f"CREATE CONSTRAINT IF NOT EXISTS FOR (b:{BASE_ENTITY_LABEL}) REQUIRE b.id IS UNIQUE")
        logger.info(f"Created unique constraint on {BASE_ENTITY_LABEL}.id")

    async def add_graph_documents(self, graph_documents: Sequence[GraphDocument],
                                  include_source: bool = False, base_entity_label: bool = False) -> None:
        """
        Merge graph documents into the database.

        Args:
            graph_documents: Documents to load
            include_source: Also merge the source document and link it to every node with MENTIONS
            base_entity_label: Add the __Entity__ label to every node, keyed by a unique id
        """
        if base_entity_label:
            constraints = (self.structured_schema.get("metadata") or {}).get("constraint") or []
            if not any(BASE_ENTITY_LABEL in (c.get("labelsOrTypes") or []) for c in constraints):
                await self.create_constraints()
                await self.refresh_schema()

        for document in graph_documents:
            source_id = None
            if include_source and document.source is not None:
                source = document.source
                source_id = source.metadata.get("id") or hashlib.md5(source.page_content.encode("utf-8")).hexdigest()
                await self.query(
                    f"MERGE (d:{SOURCE_LABEL} {{id: $id}}) SET d.text = $text SET d += $props",
                    {"id": source_id, "text": source.page_content,
                     "props": sanitize_properties(source.metadata, SOURCE_LABEL)},
                )

            nodes_by_label: Dict[str, List[Dict[str, Any]]] = defaultdict(list)
            for node in document.nodes:
                label = sanitize_label(node.type)
                if not label:
                    logger.warning(f"Skipping node '{node.id}' with unusable type '{node.type}'")
                    continue
                nodes_by_label[label].append({"id": node.id, "properties": sanitize_properties(node.properties, node.id)})

            logger.info(f"Adding {len(document.nodes)} nodes...")
            for label, rows in nodes_by_label.items():
                if base_entity_label:
                    cypher = f"UNWIND $data AS row MERGE (n:`{BASE_ENTITY_LABEL}` {{id: row.id}}) SET n:`{label}` SET n += row.properties"
                else:
                    cypher = f"UNWIND $data AS row MERGE (n:`{label}` {{id: row.id}}) SET n += row.properties"
                if source_id is not None:
                    cypher += f" WITH n MATCH (d:{SOURCE_LABEL} {{id: $source_id}}) MERGE (d)-[:MENTIONS]->(n)"
                await self.query(cypher, {"data": rows, "source_id": source_id})

            rels_by_pattern: Dict[tuple, List[Dict[str, Any]]] = defaultdict(list)
            for rel in document.relationships:
                pattern = (sanitize_label(rel.source.type), sanitize_label(rel.type), sanitize_label(rel.target.type))
                if not all(pattern):
                    logger.warning(f"Skipping relationship '{rel.type}' with unusable labels")
                    continue
                rels_by_pattern[pattern].append({
                    "source": rel.source.id,
                    "target": rel.target.id,
                    "properties": sanitize_properties(rel.properties, rel.type),
                })

            logger.info(f"Adding {len(document.relationships)} relationships...")
            for (source_label, rel_type, target_label), rows in rels_by_pattern.items():
                # Endpoints missing from document.nodes are created here
                if base_entity_label:
                    endpoints = (
                        f"MERGE (s:`{BASE_ENTITY_LABEL}` {{id: row.source}}) SET s:`{source_label}` "
                        f"MERGE (t:`{BASE_ENTITY_LABEL}` {{id: row.target}}) SET t:`{target_label}` "
                    )
                else:
                    endpoints = (
                        f"MERGE (s:`{source_label}` {{id: row.source}}) "
                        f"MERGE (t:`{target_label}` {{id: row.target}}) "
                    )
                cypher = (
                    f"UNWIND $data AS row {endpoints}"
                    f"MERGE (s)-[r:`{rel_type}`]->(t) SET r += row.properties"
                )
                await self.query(cypher, {"data": rows})

        logger.info(f"Successfully added {len(graph_documents)} graph documents to Neo4j")

    async def health_check(self) -> Dict[str, Any]:
        """Perform health check on database."""
        if not self.driver:
            return {
                "status": "disconnected",
                "database_type": "neo4j"
            }

        try:
            records = await self.query("MATCH (n) RETURN count(n) as count")
            return {
                "status": "healthy",
                "database_type": "neo4j",
                "node_count": records[0]["count"] if records else 0
            }
        except UpstreamFailure as e:
            return {
                "status": "unhealthy",
                "database_type": "neo4j",
                "error": str(e)
            }

    @property
    def database_type(self) -> str:
        """Return database type identifier."""
        return "neo4j"
