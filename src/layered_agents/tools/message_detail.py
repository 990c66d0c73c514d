"""
Tool that re-expands a compressed turn from the message store.
"""

from ..memory.store import MessageStore
from .base import Tool, ToolParameter


def create_message_detail_tool(store: MessageStore) -> Tool:
    """Create the load_message_detail tool bound to ``store``."""

    def load_message_detail(message_id: str = "") -> str:
        turn = store.get_message_by_id(message_id)
        if turn is None:
            return f'No message found with id "{message_id}".'
        return f"[{turn.role}] {turn.content}"

    return Tool(
        name="load_message_detail",
        description=(
            "Load the original text of a message by its id. Use this when a memory "
            "summary is not detailed enough."
        ),
        parameters=[
            ToolParameter(
                name="message_id",
                param_type="string",
                description="Id of the message to load (e.g. msg_...)",
                required=True,
            ),
        ],
        handler=load_message_detail,
    )
