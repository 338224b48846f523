"""Structured completions with self-healing and context overflow handling

Example:

```python
from pydantic import BaseModel
from lmstruct.config.config import LanguageModelSettings
from lmstruct.language_models.langchain import LangChainCompletionModel
from lmstruct.completion import request, respond, RequestOptions

class Task(BaseModel):
    task: str

class Plan(BaseModel):
    plan: list[Task]

model = LangChainCompletionModel(
    LanguageModelSettings(model="OpenAI/gpt-4o-mini", context_size=128000)
)
response = request(model, "Plan a trip", RequestOptions(schema=Plan))
print(response.data.plan)
response = respond(model, response, "Make it shorter")
```
"""

# pyright: reportUnusedImport=false
# flake8: noqa

from .options import RequestOptions
from .conversation import Response, continue_conversation
from .events import (
    CompletionEvent,
    CompletionObserver,
    EventListObserver,
    LoggingObserver,
)
from .healing import issues_message, function_call_reminder
from .orchestrator import (
    request,
    arequest,
    chat,
    achat,
    respond,
    arespond,
    check_token_budget,
    slice_conversation,
)
