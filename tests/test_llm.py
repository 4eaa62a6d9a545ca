import httpx
import openai
import pytest

from url_importer.errors import AuthFailure, GenerationFailed, NetworkFailure
from url_importer.llm import DEFAULT_SYSTEM_PROMPT, OpenAIGenerationBackend

_REQUEST = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")


def create_mock_response(mocker, content):
    """Helper to create a mock OpenAI API response."""
    mock_choice = mocker.MagicMock()
    mock_choice.message.content = content
    mock_response = mocker.MagicMock()
    mock_response.choices = [mock_choice]
    return mock_response


def create_status_error(error_cls, status: int, message: str):
    response = httpx.Response(status, request=_REQUEST)
    return error_cls(message, response=response, body=None)


@pytest.fixture
def mock_openai(mocker):
    """Fixture to mock the OpenAI API client."""
    return mocker.patch("openai.chat.completions.create")


@pytest.fixture
def backend(settings):
    return OpenAIGenerationBackend(settings)


def test_generate_uses_primary_model(backend, mock_openai, mocker):
    mock_openai.return_value = create_mock_response(mocker, "## Summary\nHello")

    text = backend.generate("Summarise this")

    assert text == "## Summary\nHello"
    kwargs = mock_openai.call_args.kwargs
    assert kwargs["model"] == "gpt-primary"
    assert kwargs["messages"] == [
        {"role": "system", "content": DEFAULT_SYSTEM_PROMPT},
        {"role": "user", "content": "Summarise this"},
    ]
    assert kwargs["timeout"] == 60
    assert "temperature" not in kwargs


def test_generate_passes_system_prompt_and_temperature(backend, mock_openai, mocker):
    mock_openai.return_value = create_mock_response(mocker, "recipe")

    backend.generate("Classify", system_prompt="Be terse", temperature=0.2)

    kwargs = mock_openai.call_args.kwargs
    assert kwargs["messages"][0] == {"role": "system", "content": "Be terse"}
    assert kwargs["temperature"] == 0.2


def test_generate_omits_temperature_for_reasoning_models(backend, settings, mock_openai, mocker):
    settings.AI_MODELS = ["o4-mini"]
    mock_openai.return_value = create_mock_response(mocker, "ok")

    backend.generate("Classify", temperature=0.2)

    assert "temperature" not in mock_openai.call_args.kwargs


def test_generate_retries_without_temperature_when_rejected(backend, mock_openai, mocker):
    mock_openai.side_effect = [
        create_status_error(
            openai.BadRequestError, 400, "Unsupported value: 'temperature' does not support 0.2"
        ),
        create_mock_response(mocker, "ok"),
    ]

    assert backend.generate("Classify", temperature=0.2) == "ok"
    assert mock_openai.call_count == 2
    assert mock_openai.call_args_list[0].kwargs["temperature"] == 0.2
    assert "temperature" not in mock_openai.call_args_list[1].kwargs


def test_generate_falls_back_to_next_model(backend, mock_openai, mocker):
    mock_openai.side_effect = [
        openai.APIError("API is down", request=None, body=None),
        create_mock_response(mocker, "Fallback success."),
    ]

    assert backend.generate("Prompt") == "Fallback success."
    assert [c.kwargs["model"] for c in mock_openai.call_args_list] == [
        "gpt-primary",
        "gpt-fallback",
    ]


def test_generate_skips_empty_responses(backend, mock_openai, mocker):
    mock_openai.side_effect = [
        create_mock_response(mocker, "   "),
        create_mock_response(mocker, "content"),
    ]

    assert backend.generate("Prompt") == "content"


def test_generate_skips_responses_without_choices(backend, mock_openai, mocker):
    no_choices = mocker.MagicMock()
    no_choices.choices = []
    mock_openai.side_effect = [no_choices, create_mock_response(mocker, "content")]

    assert backend.generate("Prompt") == "content"
    assert mock_openai.call_args.kwargs["model"] == "gpt-fallback"


def test_generate_fails_when_no_model_returns_choices(backend, mock_openai, mocker):
    no_choices = mocker.MagicMock()
    no_choices.choices = []
    mock_openai.return_value = no_choices

    with pytest.raises(GenerationFailed, match="no choices"):
        backend.generate("Prompt")

    assert mock_openai.call_count == 2


def test_generate_retries_transient_errors(backend, settings, mock_openai, mocker):
    settings.MAX_RETRIES = 2
    mocker.patch("url_importer.utils._sleep_backoff")
    mock_openai.side_effect = [
        openai.APIConnectionError(request=_REQUEST),
        create_mock_response(mocker, "after retry"),
    ]

    assert backend.generate("Prompt") == "after retry"
    assert mock_openai.call_count == 2
    assert mock_openai.call_args.kwargs["model"] == "gpt-primary"


def test_generate_auth_failure_aborts_and_redacts_key(backend, mock_openai):
    mock_openai.side_effect = create_status_error(
        openai.AuthenticationError, 401, "Incorrect API key provided: sk-test-key-1234"
    )

    with pytest.raises(AuthFailure) as exc_info:
        backend.generate("Prompt")

    assert mock_openai.call_count == 1
    assert "sk-test-key-1234" not in str(exc_info.value)
    assert "[REDACTED]" in str(exc_info.value)
    assert "API key" in exc_info.value.user_message


def test_generate_network_failure_after_all_models(backend, mock_openai):
    mock_openai.side_effect = openai.APIConnectionError(request=_REQUEST)

    with pytest.raises(NetworkFailure):
        backend.generate("Prompt")

    assert mock_openai.call_count == 2


def test_generate_unknown_failure_after_all_models(backend, mock_openai):
    mock_openai.side_effect = create_status_error(
        openai.UnprocessableEntityError, 422, "cannot process"
    )

    with pytest.raises(GenerationFailed) as exc_info:
        backend.generate("Prompt")

    assert not isinstance(exc_info.value, (AuthFailure, NetworkFailure))
