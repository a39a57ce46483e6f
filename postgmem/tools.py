"""
Tool definitions for agents using PostgMem.

This module maps agent tool calls one-to-one onto MemoryStore operations
and renders the results as human-readable text.
"""

import logging
import uuid
from typing import Any

from .config import tool_context
from .errors import UnknownRelationshipType
from .memory import Memory, MemoryRelationship, MemoryStorage, RelationshipType

logger = logging.getLogger("postgmem.tools")


def _parse_id(value: Any) -> uuid.UUID:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError:
        raise ValueError(f"Invalid memory ID: {value}")


def _format_memories(memories: list[Memory]) -> str:
    return "\n\n".join(memory.to_context_string() for memory in memories)


def _format_relationship(rel: MemoryRelationship) -> str:
    return (
        f"{rel.from_memory_id} -[{rel.type.value}]-> {rel.to_memory_id} "
        f"(ID: {rel.id}, Created: {rel.created_at:%Y-%m-%d %H:%M:%S})"
    )


class ToolRegistry:
    """
    Registry of memory tools available to an agent.
    """

    def __init__(self, store: MemoryStorage):
        """
        Initialize the tool registry with the memory store it drives.
        """
        self.store = store

    def get_definitions(self) -> list[dict[str, Any]]:
        """
        Get the JSON schema definitions for all available tools.
        """
        relationship_types = [t.value for t in RelationshipType]
        id_list = {"type": "array", "items": {"type": "string"}}

        return [
            {
                "type": "function",
                "function": {
                    "name": "store_memory",
                    "description": "Store a new memory in the database.",
                    "parameters": {
                        "type": "object",
                        "properties": {
                            "type": {
                                "type": "string",
                                "description": "The type of memory (e.g. 'conversation', 'document')"
                            },
                            "content": {
                                "type": "string",
                                "description": "The content of the memory as a JSON object, or plain text"
                            },
                            "source": {
                                "type": "string",
                                "description": "The source of the memory (e.g. 'user', 'system')"
                            },
                            "tags": {
                                "type": "array",
                                "items": {"type": "string"},
                                "description": "Optional tags to categorize the memory"
                            },
                            "confidence": {
                                "type": "number",
                                "description": "Confidence score for the memory (0.0 to 1.0)"
                            },
                            "title": {
                                "type": "string",
                                "description": "Optional title, included in the searchable text"
                            },
                            "related_to": {
                                "type": "string",
                                "description": "Optional ID of an existing memory to link to"
                            },
                            "relationship_type": {
                                "type": "string",
                                "enum": relationship_types,
                                "description": "Type of the link to related_to"
                            },
                        },
                        "required": ["type", "content", "source"]
                    }
                }
            },
            {
                "type": "function",
                "function": {
                    "name": "search_memories",
                    "description": "Search for memories similar to the provided text.",
                    "parameters": {
                        "type": "object",
                        "properties": {
                            "query": {
                                "type": "string",
                                "description": "The text to search for similar memories"
                            },
                            "limit": {
                                "type": "integer",
                                "description": "Maximum number of results to return"
                            },
                            "min_similarity": {
                                "type": "number",
                                "description": "Minimum similarity threshold (0.0 to 1.0)"
                            },
                            "filter_tags": {
                                "type": "array",
                                "items": {"type": "string"},
                                "description": "Only return memories carrying all of these tags"
                            },
                        },
                        "required": ["query"]
                    }
                }
            },
            {
                "type": "function",
                "function": {
                    "name": "get_memory",
                    "description": "Retrieve a specific memory by ID.",
                    "parameters": {
                        "type": "object",
                        "properties": {
                            "id": {"type": "string", "description": "The ID of the memory to retrieve"}
                        },
                        "required": ["id"]
                    }
                }
            },
            {
                "type": "function",
                "function": {
                    "name": "get_memories",
                    "description": "Retrieve several memories by ID. Unknown IDs are skipped.",
                    "parameters": {
                        "type": "object",
                        "properties": {
                            "ids": {**id_list, "description": "The IDs of the memories to retrieve"}
                        },
                        "required": ["ids"]
                    }
                }
            },
            {
                "type": "function",
                "function": {
                    "name": "delete_memory",
                    "description": "Delete a memory by ID.",
                    "parameters": {
                        "type": "object",
                        "properties": {
                            "id": {"type": "string", "description": "The ID of the memory to delete"}
                        },
                        "required": ["id"]
                    }
                }
            },
            {
                "type": "function",
                "function": {
                    "name": "create_relationship",
                    "description": "Create a directed relationship from one memory to another.",
                    "parameters": {
                        "type": "object",
                        "properties": {
                            "from_id": {"type": "string", "description": "ID of the source memory"},
                            "to_id": {"type": "string", "description": "ID of the target memory"},
                            "type": {
                                "type": "string",
                                "enum": relationship_types,
                                "description": "Relationship type"
                            },
                        },
                        "required": ["from_id", "to_id", "type"]
                    }
                }
            },
            {
                "type": "function",
                "function": {
                    "name": "get_relationships",
                    "description": "List the outgoing relationships of a memory.",
                    "parameters": {
                        "type": "object",
                        "properties": {
                            "id": {"type": "string", "description": "ID of the source memory"},
                            "type": {
                                "type": "string",
                                "enum": relationship_types,
                                "description": "Optional relationship type to filter by"
                            },
                        },
                        "required": ["id"]
                    }
                }
            },
            {
                "type": "function",
                "function": {
                    "name": "memory_stats",
                    "description": "Get statistics about the memory storage.",
                    "parameters": {"type": "object", "properties": {}}
                }
            },
        ]

    async def execute(self, tool_name: str, arguments: dict[str, Any]) -> str:
        """
        Execute a tool by name with arguments.
        """
        token = tool_context.set(tool_name)
        try:
            logger.info(f"Executing tool: {tool_name} with args: {arguments}")
            return await self._dispatch(tool_name, arguments)

        except UnknownRelationshipType as e:
            logger.warning(f"Rejected {tool_name}: {e}")
            return f"Request rejected: {e}"

        except Exception as e:
            logger.error(f"Error executing tool {tool_name}: {e}")
            return f"Error executing tool: {e}"

        finally:
            tool_context.reset(token)

    async def _dispatch(self, tool_name: str, arguments: dict[str, Any]) -> str:
        if tool_name == "store_memory":
            related_to = arguments.get("related_to")
            memory = await self.store.store_memory(
                type=arguments.get("type", ""),
                raw_content=arguments.get("content", ""),
                source=arguments.get("source", ""),
                tags=arguments.get("tags"),
                confidence=float(arguments.get("confidence", 1.0)),
                related_to=_parse_id(related_to) if related_to else None,
                relationship_type=arguments.get("relationship_type"),
                title=arguments.get("title"),
            )
            return f"Memory stored successfully with ID: {memory.id}"

        elif tool_name == "search_memories":
            memories = await self.store.search(
                arguments.get("query", ""),
                limit=int(arguments.get("limit", 10)),
                min_similarity=float(arguments.get("min_similarity", 0.7)),
                filter_tags=arguments.get("filter_tags"),
            )
            if not memories:
                return "No memories found matching your query."
            return f"Found {len(memories)} memories:\n\n{_format_memories(memories)}"

        elif tool_name == "get_memory":
            memory_id = _parse_id(arguments.get("id"))
            memory = await self.store.get(memory_id)
            if memory is None:
                return f"Memory with ID {memory_id} not found."
            return memory.to_context_string()

        elif tool_name == "get_memories":
            ids = [_parse_id(i) for i in arguments.get("ids", [])]
            if not ids:
                return "No memory IDs provided."
            memories = await self.store.get_many(ids)
            if not memories:
                return "None of the requested memories were found."
            return f"Found {len(memories)} of {len(ids)} memories:\n\n{_format_memories(memories)}"

        elif tool_name == "delete_memory":
            memory_id = _parse_id(arguments.get("id"))
            if await self.store.delete(memory_id):
                return f"Memory with ID {memory_id} deleted successfully."
            return f"Memory with ID {memory_id} not found or could not be deleted."

        elif tool_name == "create_relationship":
            rel = await self.store.create_relationship(
                _parse_id(arguments.get("from_id")),
                _parse_id(arguments.get("to_id")),
                arguments.get("type", ""),
            )
            return f"Relationship created: {_format_relationship(rel)}"

        elif tool_name == "get_relationships":
            memory_id = _parse_id(arguments.get("id"))
            rels = await self.store.get_relationships(memory_id, arguments.get("type"))
            if not rels:
                return f"No relationships found for memory {memory_id}."
            lines = [f"Found {len(rels)} relationships:"]
            lines.extend(f"- {_format_relationship(rel)}" for rel in rels)
            return "\n".join(lines)

        elif tool_name == "memory_stats":
            stats = await self.store.get_stats()
            return (
                f"Total memories: {stats.total_memories}\n"
                f"Average memory size: {stats.average_memory_size_bytes} bytes"
            )

        else:
            return f"Tool {tool_name} not found."
