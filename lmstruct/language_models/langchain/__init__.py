"""LangChain interface to language models

This package connects the completion pipeline to the chat models
supported by LangChain. The models are specified by a
LanguageModelSettings object, created in code or loaded from
config.toml, and wrapped in a LangChainCompletionModel that implements
the CompletionModel interface.

Example:

```python
from lmstruct.config.config import LanguageModelSettings
from lmstruct.language_models.langchain import LangChainCompletionModel

model = LangChainCompletionModel(
    LanguageModelSettings(model="OpenAI/gpt-4o-mini", context_size=128000)
)
```
"""

# pyright: reportUnusedImport=false
# flake8: noqa

from .adapter import LangChainCompletionModel, is_transient_error
from .models import create_model_from_settings
