from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse

from chatstream.llm.streaming import to_sse
from chatstream.models.request import ToolInvocationRequest
from chatstream.models.response import ErrorResponse
from chatstream.tools.invoker import ToolInvoker, get_tool_invoker

router = APIRouter()


@router.post("/api/tools/invoke", responses={400: {"model": ErrorResponse}})
async def invoke_tool(
    request: ToolInvocationRequest,
    invoker: ToolInvoker = Depends(get_tool_invoker)
):
    """Stream the tool's partial arguments as Server-Sent Events, ending in done or error."""
    invocation = invoker.invoke(
        request.input,
        force_structured_output=request.force_structured_output
    )
    frames = (to_sse(event) for event in invocation.stream_data.events())
    return StreamingResponse(frames, media_type="text/event-stream")
