"""
Read and write configuration file.

This file also contains the definitions of the model sources supported
in the package, and the defaults used when sending requests.
"""

from pathlib import Path
from typing import Any, Literal

from pydantic import (
    Field,
    field_validator,
    BaseModel,
)
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    TomlConfigSettingsSource,
)

# Define supported model sources. These sources must also be defined
# in the model factory of the language framework
# (lmstruct.language_models.langchain.models).
ModelSource = Literal['OpenAI', 'Anthropic', 'Mistral', 'Gemini', 'Debug']

DEFAULT_CONFIG_FILE = "config.toml"
ENV_PREFIX = "LMSTRUCT_"

# Request defaults
DEFAULT_RETRIES = 3
DEFAULT_RETRY_INTERVAL = 30.0  # seconds, doubled at each retry
DEFAULT_TIMEOUT = 60.0  # seconds
DEFAULT_MINIMUM_RESPONSE_TOKENS = 200
DEFAULT_ENCODING = "cl100k_base"

ProviderParam = str | int | float | bool | None


class LanguageModelSettings(BaseModel):
    """
    Specification of the language model and its context window.

    Attributes:
        model: model specification, 'model_provider/model'
        temperature: float between 0.0 and 2.0
        max_tokens: max number of generated tokens
        context_size: size of the context window in tokens. If None,
            prompts are not checked against the token budget
        stream: stream the response from the model
        function_calling: the model supports native function (tool)
            calls. If False, the schema is sent in the prompt and the
            output is extracted from the text of the response
        provider_params: provider-specific parameters
    """

    model: str = Field(
        description="Model specification in the form "
        + "'model_provider/model' (e.g., 'OpenAI/gpt-4o')"
    )
    temperature: float = Field(
        default=0.1,
        ge=0.0,
        le=2.0,
        description="Controls randomness in model responses (0.0-2.0)",
    )
    max_tokens: int | None = Field(
        default=None,
        ge=1,
        description="Maximum number of tokens to generate",
    )
    context_size: int | None = Field(
        default=None,
        ge=1,
        description="Context window of the model in tokens",
    )
    stream: bool = Field(
        default=False, description="Stream the model response"
    )
    function_calling: bool = Field(
        default=True,
        description="The model supports native function calls",
    )
    provider_params: dict[str, ProviderParam] = Field(
        default_factory=dict,
        description="Provider-specific parameters (e.g., top_p)",
    )

    model_config = SettingsConfigDict(frozen=True, extra='forbid')

    def __hash__(self) -> int:
        return hash(
            (
                self.model,
                self.temperature,
                self.max_tokens,
                self.context_size,
                self.stream,
                self.function_calling,
                tuple(sorted(self.provider_params.items())),
            )
        )

    def get_model_source(self) -> ModelSource:
        return self.model.split('/')[0]  # type: ignore

    def get_model_name(self) -> str:
        return self.model.split('/')[1]

    @field_validator('model', mode='after')
    @classmethod
    def validate_model_spec(cls, spec: str) -> str:
        cleaned_spec = spec.strip()
        if not cleaned_spec:
            raise ValueError("Model specification is empty")
        if '\n' in cleaned_spec or '\r' in cleaned_spec:
            raise ValueError(
                "Model specification cannot contain newlines or carriage"
                + " returns."
            )
        tokens = cleaned_spec.split('/')
        if len(tokens) != 2:
            raise ValueError(
                "Model specification must contain the model provider and "
                + "the model name separated by a single '/'.",
            )
        source = tokens[0].strip()
        if source not in ModelSource.__args__:
            raise ValueError(
                f"Invalid model provider: '{source}'. "
                + f"Must be one of {ModelSource.__args__}."
            )
        return source + '/' + tokens[1].strip()


class RequestSettings(BaseModel):
    """
    Defaults applied to each structured completion request.

    Attributes:
        retries: retries after a transient provider error
        retry_interval: seconds to wait before the first retry. The
            interval doubles at each further retry
        timeout: seconds to wait for a response before the call is
            aborted (an aborted call counts as a transient error)
        minimum_response_tokens: tokens reserved for the response
            when checking the prompt against the context window
        auto_heal: send a corrective message when the model output
            does not conform to the schema
        auto_slice: shorten the prompt when it does not fit the
            context window
        encoding: name of the tiktoken encoding used to count tokens
    """

    retries: int = Field(default=DEFAULT_RETRIES, ge=0)
    retry_interval: float = Field(default=DEFAULT_RETRY_INTERVAL, ge=0.0)
    timeout: float = Field(default=DEFAULT_TIMEOUT, gt=0.0)
    minimum_response_tokens: int = Field(
        default=DEFAULT_MINIMUM_RESPONSE_TOKENS, ge=0
    )
    auto_heal: bool = True
    auto_slice: bool = False
    encoding: str = DEFAULT_ENCODING

    model_config = SettingsConfigDict(frozen=True, extra='forbid')


class Settings(BaseSettings):
    """
    A pydantic settings object containing the configuration.

    Settings are read from the configuration file in TOML format and
    from environment variables prefixed with LMSTRUCT_ (nested fields
    are separated by a double underscore, as in
    LMSTRUCT_REQUEST__RETRIES=5). Arguments given to the constructor
    take precedence over the file, and the file over the environment.

    Attributes:
        model: the language model
        request: request defaults
    """

    model: LanguageModelSettings = Field(
        default_factory=lambda: LanguageModelSettings(
            model="OpenAI/gpt-4.1-mini", context_size=128000
        ),
        description="Language model used for structured completions",
    )
    request: RequestSettings = Field(
        default_factory=RequestSettings,
        description="Defaults for completion requests",
    )

    model_config = SettingsConfigDict(
        toml_file=DEFAULT_CONFIG_FILE,
        env_prefix=ENV_PREFIX,
        env_nested_delimiter="__",
        frozen=True,
        validate_assignment=True,
        extra='ignore',
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Customize the order of settings sources."""
        return (
            init_settings,
            TomlConfigSettingsSource(settings_cls),
            env_settings,
        )

    def __str__(self) -> str:
        return serialize_settings(self)


def serialize_settings(sets: BaseSettings) -> str:
    """Transform the settings into a string in TOML format.

    Args:
        sets: The settings object to serialize

    Returns:
        TOML formatted string representation of settings
    """
    import tomlkit

    doc = tomlkit.document()
    doc.add(tomlkit.comment("Configuration file"))
    doc.add(tomlkit.nl())

    data: dict[str, Any] = sets.model_dump()
    for key, value in data.items():
        if isinstance(value, dict):
            tbl = tomlkit.table()
            for kkey, vvalue in value.items():  # type: ignore
                # None cannot be represented in TOML
                if vvalue is None:
                    continue
                if isinstance(vvalue, dict):
                    vvalue = {
                        k: v
                        for k, v in vvalue.items()  # type: ignore
                        if v is not None
                    }
                tbl[kkey] = vvalue
            doc[key] = tbl
        elif value is not None:
            doc[key] = value

    return str(tomlkit.dumps(doc))  # type: ignore


def export_settings(
    settings: BaseSettings, file_path: str | Path | None = None
) -> None:
    """Save settings to file in TOML format.

    Args:
        settings: A settings object to save
        file_path: The settings file path (defaults to config.toml)

    Raises:
        OSError: If file cannot be written
    """
    file_path = Path(file_path or DEFAULT_CONFIG_FILE)
    file_path.parent.mkdir(parents=True, exist_ok=True)

    with file_path.open("w", encoding="utf-8") as f:
        f.write(serialize_settings(settings))


def create_default_config_file(
    file_path: str | Path | None = None,
) -> None:
    """Create a settings file containing the default values.

    Args:
        file_path: Target file path (defaults to config.toml)
    """
    file_path = Path(file_path or DEFAULT_CONFIG_FILE)
    if file_path.exists():
        # otherwise, it will be read in
        file_path.unlink()

    export_settings(_settings_from_file(file_path), file_path)


def _settings_from_file(file_path: Path) -> Settings:
    class FileSettings(Settings):
        model_config = SettingsConfigDict(
            toml_file=str(file_path),
            env_prefix=ENV_PREFIX,
            env_nested_delimiter="__",
            frozen=True,
            validate_assignment=True,
            extra='ignore',
        )

    return FileSettings()


def load_settings(file_path: str | Path | None = None) -> Settings:
    """Load settings from TOML file.

    Args:
        file_path: Path to settings file (defaults to config.toml)

    Returns:
        Loaded settings object

    Raises:
        FileNotFoundError: If settings file doesn't exist
        ValueError: If settings file is invalid
    """
    file_path = Path(file_path or DEFAULT_CONFIG_FILE)
    if not file_path.exists():
        raise FileNotFoundError(f"Settings file not found: {file_path}")

    try:
        return _settings_from_file(file_path)
    except Exception as e:
        raise ValueError(
            f"Failed to load settings from {file_path}: {e}"
        ) from e
