"""Error taxonomy for agentflow.

Transport- and protocol-level errors propagate out of
:meth:`~agentflow.runner.Runner.process` and end the event stream.
Tool errors never do: the executor turns them into tool-result
messages so the model can react on its next turn.
"""


class AgentError(Exception):
    """Base class for every error raised by agentflow."""


class AgentConnectionError(AgentError, ConnectionError):
    """The endpoint could not be reached or its URL is malformed."""


class UpstreamError(AgentError):
    """The endpoint answered with a non-2xx status.

    Args:
        status: HTTP status code of the response.
        body: Response body, kept as diagnostic text.
        url: The URL that was requested, when known.
    """

    def __init__(self, status: int, body: str, url: str | None = None):
        self.status = status
        self.body = body
        self.url = url
        where = f" from {url}" if url else ""
        super().__init__(f"Invalid response{where} (status {status}): {body}")


class InvalidSourceError(AgentError):
    """The selected model's family does not match the source."""


class MissingCredentialsError(AgentError):
    """No API key was given and none was found in the environment."""


class MaxTurnsExceededError(AgentError):
    def __init__(self, max_turns: int):
        self.max_turns = max_turns
        super().__init__(f"Maximum turns ({max_turns}) exceeded")


class MalformedLineError(AgentError):
    """A stream line carried the data prefix but no usable JSON envelope.

    Raised by :meth:`agentflow.streaming.ChunkDecoder.parse` and swallowed by the
    decoder; it never reaches the caller of ``process``.
    """


class ToolError(AgentError):
    """Base for errors local to a single tool invocation."""

    def __init__(self, tool_name: str, message: str):
        self.tool_name = tool_name
        super().__init__(message)


class ToolDecodeError(ToolError):
    """The tool-call arguments could not be decoded into the tool's input."""

    def __init__(self, tool_name: str, arguments: str, reason: str):
        self.arguments = arguments
        super().__init__(
            tool_name, f"Invalid arguments for tool '{tool_name}': {reason}"
        )


class ToolExecutionError(ToolError):
    """The tool handler raised while running."""

    def __init__(self, tool_name: str, original: BaseException):
        self.original = original
        super().__init__(tool_name, str(original))
