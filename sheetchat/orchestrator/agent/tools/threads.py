"""Thread management tool handler: deleteThreadTool."""

from pydantic import BaseModel, ConfigDict, Field, StrictBool

from sheetchat.orchestrator.agent.tools.core import (
    ActionDescription,
    ExecutedOk,
    ToolContext,
    ToolResult,
)


class DeleteThreadParams(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    thread_id: str = Field(alias="threadId", description="ID of the thread to delete")
    confirmed: StrictBool | None = Field(
        default=False, description="Whether user has confirmed this action"
    )


def describe_delete_thread(params: DeleteThreadParams) -> ActionDescription:
    return ActionDescription(
        action="delete",
        description=f'Delete thread "{params.thread_id}" and all its messages',
        target_type="thread",
        target_id=params.thread_id,
    )


async def delete_thread_tool(params: DeleteThreadParams, context: ToolContext) -> ToolResult:
    """Delete a thread and its messages. Only reached with confirmed=true.

    Raises:
        NotFoundError: If the thread does not exist.
    """
    context.thread_store.delete_thread(params.thread_id)
    return ExecutedOk(message=f"Successfully deleted thread {params.thread_id}")
