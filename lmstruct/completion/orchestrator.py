"""
Structured completion requests.

A request is sent to a CompletionModel and, when a schema is given,
the model is asked to respond by calling a function whose parameters
follow the schema. The arguments of the call are validated against the
schema and returned as `data` in the Response.

The request goes through the following steps:

    - the prompt is checked against the context window of the model.
        If it does not fit, a TokenError is raised without sending it,
        or, with auto_slice, the latest user turn is shortened and the
        request resubmitted
    - the request is sent. Transient provider errors (rate limits,
        timeouts, server errors) are retried with an interval that
        doubles at each retry
    - if the model did not call the function, or the arguments do not
        validate, a corrective message is sent once (auto_heal).
        A second failure raises a ValidationFailedError

Models without native function calls (settings.function_calling set to
False) receive the schema in the prompt, and the JSON object is
extracted from the text of their response.

Main functions:
    arequest, request: send a prompt
    achat, chat: send a conversation
    arespond, respond: continue the conversation of a response

The functions without the 'a' prefix are synchronous wrappers and
cannot be called from a running event loop.

Example:
    ```python
    from pydantic import BaseModel
    from lmstruct.completion import request, RequestOptions

    class Startup(BaseModel):
        name: str
        description: str

    response = request(
        model,
        "Generate a startup idea",
        RequestOptions(schema=Startup),
    )
    startup: Startup = response.data
    ```
"""

import asyncio
import json
from collections.abc import Callable, Sequence
from typing import Any

from lmstruct.errors import (
    MalformedResponseError,
    TokenError,
    TransientProviderError,
    ValidationFailedError,
)
from lmstruct.language_models.base import (
    CompletionModel,
    ModelRequestOptions,
)
from lmstruct.language_models.json_extract import (
    extract_json,
    parse_unsafe_json,
)
from lmstruct.language_models.messages import (
    FunctionCall,
    FunctionDescriptor,
    Message,
    RawResponse,
)
from lmstruct.language_models.schema import (
    SchemaValidationError,
    build_function,
    schema_instructions,
    validate_payload,
)
from .conversation import Response, continue_conversation
from .events import CompletionEvent, CompletionObserver, LoggingObserver
from .healing import function_call_reminder, issues_message
from .options import RequestOptions

# characters per token used when slicing an overflowing prompt
CHARS_PER_TOKEN = 4

Prompt = str | Callable[[], str]

_default_observer = LoggingObserver()


def _notify(
    observer: CompletionObserver, kind: Any, message: str, **data: Any
) -> None:
    observer.notify(CompletionEvent(kind=kind, message=message, data=data))


def _texts(messages: Sequence[Message]) -> list[str]:
    texts: list[str] = []
    for msg in messages:
        if msg.function_call is not None:
            arguments = msg.function_call.arguments
            if not isinstance(arguments, str):
                arguments = json.dumps(arguments)
            texts.append(arguments)
        else:
            texts.append(msg.content or "")
    return texts


def check_token_budget(
    model: CompletionModel,
    messages: Sequence[Message],
    functions: Sequence[FunctionDescriptor] | None,
    minimum_response_tokens: int,
) -> None:
    """
    Raise a TokenError if the prompt, with the tokens reserved for the
    response, exceeds the context window of the model. Models without
    a known context size are not checked.
    """
    context_size = model.settings.context_size
    if context_size is None:
        return
    required = model.get_tokens_from_prompt(_texts(messages), functions)
    max_prompt_tokens = context_size - minimum_response_tokens
    if required > max_prompt_tokens:
        raise TokenError(
            f"Prompt too big for model: {required} tokens required, "
            + f"{max_prompt_tokens} available",
            required - max_prompt_tokens,
        )


def slice_conversation(
    conversation: Sequence[Message], overflow_tokens: int
) -> tuple[Message, ...] | None:
    """
    Shorten the latest user turn by the characters corresponding to
    the overflowing tokens.

    Returns:
        the sliced conversation, or None if the turn is too short to
        be sliced (or there is no user turn)
    """
    for index in range(len(conversation) - 1, -1, -1):
        turn = conversation[index]
        if turn.role != 'user':
            continue
        content = turn.content or ""
        chunk_size = len(content) - overflow_tokens * CHARS_PER_TOKEN
        if chunk_size < 0:
            return None
        sliced = turn.model_copy(update={'content': content[:chunk_size]})
        return (
            tuple(conversation[:index])
            + (sliced,)
            + tuple(conversation[index + 1 :])
        )
    return None


def _with_instructions(
    conversation: tuple[Message, ...], instructions: str
) -> tuple[Message, ...]:
    # appended to the latest user turn
    for index in range(len(conversation) - 1, -1, -1):
        turn = conversation[index]
        if turn.role == 'user':
            content = (turn.content or "") + "\n\n" + instructions
            return (
                conversation[:index]
                + (turn.model_copy(update={'content': content}),)
                + conversation[index + 1 :]
            )
    return continue_conversation(conversation, instructions)


def _payload(raw: RawResponse, native: bool) -> Any:
    if not native:
        return extract_json(raw.content or "")
    if raw.function_call is None:
        return None
    arguments = raw.function_call.arguments
    if isinstance(arguments, str):
        return parse_unsafe_json(arguments)
    return arguments


async def _send(
    model: CompletionModel,
    messages: tuple[Message, ...],
    function: FunctionDescriptor | None,
    options: RequestOptions,
    observer: CompletionObserver,
) -> RawResponse:
    functions = [function] if function is not None else None
    try:
        check_token_budget(
            model, messages, functions, options.minimum_response_tokens
        )
    except TokenError as e:
        _notify(
            observer,
            'token_overflow',
            str(e),
            overflow_tokens=e.overflow_tokens,
        )
        raise

    def on_token(text: str) -> None:
        _notify(observer, 'token', text)
        if options.on_token is not None:
            options.on_token(text)

    model_options = ModelRequestOptions(
        functions=functions,
        call_function=function.name if function is not None else None,
        on_token=on_token,
    )

    retries = options.retries
    interval = options.retry_interval
    while True:
        _notify(
            observer,
            'request',
            f"Sending request: {messages[-1].content}",
            messages=len(messages),
        )
        try:
            raw = await asyncio.wait_for(
                model.achat_completion(messages, model_options),
                timeout=options.timeout,
            )
        except (TransientProviderError, asyncio.TimeoutError) as e:
            if retries <= 0:
                if isinstance(e, TransientProviderError):
                    raise
                raise TransientProviderError(
                    f"Request timed out after {options.timeout} seconds"
                ) from e
            _notify(
                observer,
                'retry',
                f"Transient error ({e or type(e).__name__}), retrying in "
                + f"{interval} seconds",
                interval=interval,
                retries=retries,
            )
            await asyncio.sleep(interval)
            retries -= 1
            interval *= 2
            continue

        if raw.content is None and raw.function_call is None:
            raise MalformedResponseError(
                "The response has neither content nor function call"
            )
        if not model.settings.stream:
            _notify(
                observer,
                'response',
                f"Received response: {raw.content or raw.function_call}",
            )
        return raw


def _response(
    raw: RawResponse,
    data: Any,
    messages: tuple[Message, ...],
    function_call: FunctionCall | None = None,
) -> Response:
    return Response(
        content=raw.content,
        function_call=function_call or raw.function_call,
        usage=raw.usage,
        data=data,
        messages=messages,
    )


async def _complete(
    model: CompletionModel,
    conversation: tuple[Message, ...],
    options: RequestOptions,
    observer: CompletionObserver,
) -> Response:
    schema = options.schema_
    if schema is None:
        raw = await _send(model, conversation, None, options, observer)
        return _response(
            raw, raw.content or "", conversation + (raw.to_message(),)
        )

    function = build_function(
        schema, options.function_name, options.function_description
    )
    native = model.supports_functions
    if native:
        messages = conversation
        offered: FunctionDescriptor | None = function
    else:
        messages = _with_instructions(
            conversation, schema_instructions(function)
        )
        offered = None

    async def exchange(messages: tuple[Message, ...]) -> tuple[
        RawResponse, tuple[Message, ...], Any
    ]:
        raw = await _send(model, messages, offered, options, observer)
        return raw, messages + (raw.to_message(),), _payload(raw, native)

    def failure(
        message: str, raw: RawResponse, issues: list[Any] | None = None
    ) -> ValidationFailedError:
        _notify(observer, 'validation_failed', message)
        return ValidationFailedError(message, issues=issues, response=raw)

    raw, messages, payload = await exchange(messages)

    if payload is None:
        if not options.auto_heal:
            raise failure("Response function not called", raw)
        _notify(
            observer, 'heal', "Function not called, sending corrective message"
        )
        raw, messages, payload = await exchange(
            continue_conversation(
                messages, function_call_reminder(function.name, native)
            )
        )
        if payload is None:
            raise failure("Response function autoheal failed", raw)

    try:
        data = validate_payload(schema, payload)
    except SchemaValidationError as e:
        if not options.auto_heal:
            raise failure(
                f"Response parsing failed: {e}", raw, e.issues
            ) from e
        _notify(
            observer,
            'heal',
            f"Response parsing failed ({e}), sending corrective message",
            issues=[i.model_dump() for i in e.issues],
        )
        raw, messages, payload = await exchange(
            continue_conversation(
                messages, issues_message(e.issues, function.name)
            )
        )
        if payload is None:
            raise failure("Response schema autoheal failed", raw) from e
        try:
            data = validate_payload(schema, payload)
        except SchemaValidationError as e2:
            raise failure(
                f"Response schema autoheal failed: {e2}", raw, e2.issues
            ) from e2

    function_call = None
    if not native:
        function_call = FunctionCall(name=function.name, arguments=payload)
    return _response(raw, data, messages, function_call)


async def _arun(
    model: CompletionModel,
    conversation: tuple[Message, ...],
    options: RequestOptions,
    observer: CompletionObserver,
) -> Response:
    while True:
        try:
            return await _complete(model, conversation, options, observer)
        except TokenError as e:
            if not options.auto_slice:
                raise
            sliced = slice_conversation(conversation, e.overflow_tokens)
            if sliced is None:
                raise
            _notify(
                observer,
                'slice',
                "Request prompt too long, shortening latest turn by "
                + f"{e.overflow_tokens * CHARS_PER_TOKEN} characters",
                overflow_tokens=e.overflow_tokens,
            )
            conversation = sliced


def _conversation(
    options: RequestOptions, turns: Sequence[Message]
) -> tuple[Message, ...]:
    head: tuple[Message, ...] = ()
    system_message = options.system_message
    if callable(system_message):
        system_message = system_message()
    if system_message:
        head = (Message(role='system', content=system_message),)
    return head + tuple(options.message_history) + tuple(turns)


async def achat(
    model: CompletionModel,
    messages: Sequence[Message],
    options: RequestOptions | None = None,
    observer: CompletionObserver | None = None,
) -> Response:
    """
    Send a conversation to the model.

    Args:
        model: the completion model
        messages: the conversation. The system message and the message
            history of the options are put in front of it
        options: the request options
        observer: receives the events of the request (logged by
            default)

    Returns:
        the response, with the validated structured output in `data`

    Raises:
        TokenError: the prompt does not fit the context window
        TransientProviderError: the provider still fails after all
            retries
        ValidationFailedError: no valid structured output
        MalformedResponseError: the response has neither text nor a
            function call
        ConfigurationError: the schema root is not an object
    """
    options = options or RequestOptions()
    return await _arun(
        model,
        _conversation(options, messages),
        options,
        observer or _default_observer,
    )


async def arequest(
    model: CompletionModel,
    prompt: Prompt,
    options: RequestOptions | None = None,
    observer: CompletionObserver | None = None,
) -> Response:
    """
    Send a prompt to the model. The prompt is a string, or a function
    returning it.

    See achat for arguments and exceptions.
    """
    text = prompt if isinstance(prompt, str) else prompt()
    return await achat(
        model, [Message(role='user', content=text)], options, observer
    )


async def arespond(
    model: CompletionModel,
    response: Response,
    message: Message | str,
    options: RequestOptions | None = None,
    observer: CompletionObserver | None = None,
) -> Response:
    """
    Continue the conversation recorded in a response with a new turn.
    The system message and message history of the options are not
    used, as the conversation already contains them.

    See achat for arguments and exceptions.
    """
    options = options or RequestOptions()
    return await _arun(
        model,
        continue_conversation(response.messages, message),
        options,
        observer or _default_observer,
    )


def request(
    model: CompletionModel,
    prompt: Prompt,
    options: RequestOptions | None = None,
    observer: CompletionObserver | None = None,
) -> Response:
    """Synchronous version of arequest."""
    return asyncio.run(arequest(model, prompt, options, observer))


def chat(
    model: CompletionModel,
    messages: Sequence[Message],
    options: RequestOptions | None = None,
    observer: CompletionObserver | None = None,
) -> Response:
    """Synchronous version of achat."""
    return asyncio.run(achat(model, messages, options, observer))


def respond(
    model: CompletionModel,
    response: Response,
    message: Message | str,
    options: RequestOptions | None = None,
    observer: CompletionObserver | None = None,
) -> Response:
    """Synchronous version of arespond."""
    return asyncio.run(arespond(model, response, message, options, observer))
