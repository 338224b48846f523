"""
Corrective messages sent to the model when its response does not carry
a valid structured output.
"""

from collections.abc import Sequence

from lmstruct.language_models.messages import Message
from lmstruct.language_models.schema import FUNCTION_NAME, ValidationIssue


def issues_message(
    issues: Sequence[ValidationIssue], function_name: str = FUNCTION_NAME
) -> Message:
    """
    The user turn asking the model to fix the validation issues of its
    previous response.

    Args:
        issues: the validation issues
        function_name: the function the model was asked to call

    Returns:
        a user message listing each issue with its path
    """
    lines = [
        "There is an issue with that response, please rewrite by "
        + f"calling the {function_name} function with the correct "
        + "parameters."
    ]
    for issue in issues:
        if issue.path:
            lines.append(
                f"There is an issue at path {issue.dotted_path}. "
                + f"The issue is: {issue.message}."
            )
        else:
            lines.append(f"The issue is: {issue.message}.")
    return Message(role='user', content="\n".join(lines))


def function_call_reminder(
    function_name: str = FUNCTION_NAME, native: bool = True
) -> Message:
    """
    The user turn reminding the model to respond with the function
    call (or, for models without native function calls, with the JSON
    object the schema describes).
    """
    if native:
        content = f"Please respond with a call to the {function_name} function"
    else:
        content = (
            "Please respond ONLY with a JSON object conforming to the "
            + "JSON schema given above"
        )
    return Message(role='user', content=content)
