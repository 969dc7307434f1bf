import pytest
import requests

from sheet_analyst.gateway import (
    CLEAR_HISTORY,
    GENERATION_CONFIG,
    HELP_TEXT,
    AIGateway,
    ErrorKind,
    GatewayResult,
    classify_response,
)
from sheet_analyst.history import ConversationTurn
from sheet_analyst.settings import Settings

KEY = "test-key-123"


def _gateway(session, **kwargs):
    kwargs.setdefault("settings", Settings(api_key=KEY))
    kwargs.setdefault("retry_delay", 0)
    return AIGateway(session=session, model="gemini-test", **kwargs)


@pytest.mark.parametrize("key", ["", "   "])
def test_missing_key_makes_no_network_call(make_session, sales_dataset, key):
    session = make_session()
    gateway = _gateway(session, settings=Settings(api_key=key))

    result = gateway.ask("What is the total revenue?", sales_dataset, [])

    assert result.success is False
    assert result.error_kind is ErrorKind.MISSING_CREDENTIAL
    assert "GEMINI_API_KEY" in result.text
    assert session.calls == []


def test_successful_answer(make_session, ok_response, sales_dataset):
    session = make_session(ok_response("Revenue is 450 in total."))
    gateway = _gateway(session)

    result = gateway.ask("What is the total revenue?", sales_dataset, [])

    assert result == GatewayResult(success=True, text="Revenue is 450 in total.")
    call = session.calls[0]
    assert call["url"].endswith("/gemini-test:generateContent")
    assert call["headers"]["x-goog-api-key"] == KEY
    assert KEY not in call["url"]
    assert call["timeout"] == gateway.timeout
    assert call["json"]["generationConfig"] == GENERATION_CONFIG
    prompt = call["json"]["contents"][-1]["parts"][0]["text"]
    assert "Dataset: Sales" in prompt
    assert prompt.endswith("What is the total revenue?")


def test_history_is_sent_as_turns_within_the_window(make_session, ok_response):
    session = make_session(ok_response())
    history = [ConversationTurn("user", f"q{i}") if i % 2 == 0 else ConversationTurn("assistant", f"a{i}")
               for i in range(6)]
    gateway = _gateway(session, history_window=4)

    gateway.ask("next", None, history)

    contents = session.calls[0]["json"]["contents"]
    assert [c["role"] for c in contents] == ["user", "model", "user", "model", "user"]
    assert contents[0]["parts"][0]["text"] == "q2"


def test_statistics_and_custom_instructions_reach_the_prompt(make_session, ok_response, sales_dataset):
    session = make_session(ok_response())
    gateway = _gateway(session, settings=Settings(api_key=KEY, custom_instructions="Answer in French."))

    gateway.ask("trend?", sales_dataset, [], include_statistics=True)

    prompt = session.calls[0]["json"]["contents"][-1]["parts"][0]["text"]
    assert prompt.startswith("Answer in French.")
    assert "Column statistics:" in prompt


def test_per_call_settings_override(make_session, ok_response):
    session = make_session(ok_response("ok"))
    gateway = AIGateway(session=session, retry_delay=0)

    result = gateway.ask("hi", settings=Settings(api_key=KEY))

    assert result.success
    assert session.calls[0]["headers"]["x-goog-api-key"] == KEY


def test_settings_fall_back_to_environment(monkeypatch, make_session):
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    monkeypatch.delenv("GOOGLE_API_KEY", raising=False)
    session = make_session()

    result = AIGateway(session=session).ask("hi")

    assert result.error_kind is ErrorKind.MISSING_CREDENTIAL
    assert session.calls == []


@pytest.mark.parametrize(
    "body",
    [
        {"candidates": []},
        {},
        {"candidates": [{"finishReason": "SAFETY"}]},
        {"candidates": [{"content": {"parts": [{"text": "   "}]}}]},
        {"candidates": [{"content": {}}]},
    ],
)
def test_empty_responses(make_session, raw_response, body):
    session = make_session(raw_response(200, body))

    result = _gateway(session).ask("q")

    assert result.success is False
    assert result.error_kind is ErrorKind.EMPTY_RESPONSE


def test_first_non_empty_candidate_wins(make_session, raw_response):
    body = {
        "candidates": [
            {"content": {"parts": [{"text": ""}]}},
            {"content": {"parts": [{"text": "Second "}, {"text": "answer"}]}},
        ]
    }
    session = make_session(raw_response(200, body))

    assert _gateway(session).ask("q").text == "Second answer"


@pytest.mark.parametrize(
    "body",
    ["not json at all", "[1, 2]", '{"candidates": {"a": 1}}', '{"candidates": ["text"]}'],
)
def test_malformed_responses_keep_raw_body(make_session, raw_response, body):
    session = make_session(raw_response(200, body))

    result = _gateway(session).ask("q")

    assert result.error_kind is ErrorKind.MALFORMED_RESPONSE
    assert result.raw_error == body


@pytest.mark.parametrize(
    "status_code,status,kind",
    [
        (400, "INVALID_ARGUMENT", ErrorKind.BAD_REQUEST),
        (403, "PERMISSION_DENIED", ErrorKind.UNAUTHORIZED),
        (429, "RESOURCE_EXHAUSTED", ErrorKind.QUOTA_EXCEEDED),
        (404, "NOT_FOUND", ErrorKind.PROVIDER_ERROR),
    ],
)
def test_provider_errors_are_classified(make_session, error_response, status_code, status, kind):
    session = make_session(error_response(status_code, status))

    result = _gateway(session).ask("q")

    assert result.success is False
    assert result.error_kind is kind
    assert str(status_code) in result.raw_error
    assert len(session.calls) == 1


def test_unparseable_error_body_is_a_network_error(make_session, raw_response):
    session = make_session(raw_response(502, "<html>Bad Gateway</html>"))

    result = _gateway(session, max_retries=0).ask("q")

    assert result.error_kind is ErrorKind.NETWORK_ERROR
    assert "Bad Gateway" in result.raw_error


def test_transient_status_is_retried_once(make_session, raw_response, ok_response):
    session = make_session(raw_response(503, "unavailable"), ok_response("recovered"))

    result = _gateway(session).ask("q")

    assert result.success
    assert result.text == "recovered"
    assert len(session.calls) == 2


def test_persistent_transient_status_is_classified_after_retry(make_session, error_response):
    session = make_session(
        error_response(503, "UNAVAILABLE", "overloaded"),
        error_response(503, "UNAVAILABLE", "overloaded"),
    )

    result = _gateway(session).ask("q")

    assert result.error_kind is ErrorKind.PROVIDER_ERROR
    assert "overloaded" in result.text
    assert len(session.calls) == 2


def test_connection_failures_become_network_errors(make_session):
    session = make_session(requests.ConnectionError("refused"), requests.Timeout("slow"))

    result = _gateway(session).ask("q")

    assert result.error_kind is ErrorKind.NETWORK_ERROR
    assert len(session.calls) == 2


def test_timeout_then_success(make_session, ok_response):
    session = make_session(requests.Timeout("slow"), ok_response("done"))

    assert _gateway(session).ask("q").text == "done"


def test_unexpected_exception_is_captured(make_session):
    session = make_session(RuntimeError("boom"))

    result = _gateway(session).ask("q")

    assert result.success is False
    assert result.error_kind is ErrorKind.UNEXPECTED_ERROR
    assert "boom" in result.raw_error


def test_api_key_is_scrubbed_from_errors(make_session, error_response):
    session = make_session(error_response(400, "INVALID_ARGUMENT", f"API key {KEY} not valid"))

    result = _gateway(session).ask("q")

    assert KEY not in result.text
    assert KEY not in result.raw_error
    assert "***" in result.raw_error


@pytest.mark.parametrize("query", ["/help", "/HELP", "/help me please", "  /Help"])
def test_help_command_answers_locally(make_session, query):
    session = make_session()

    result = _gateway(session, settings=Settings()).ask(query)

    assert result.success
    assert result.text == HELP_TEXT
    assert result.action is None
    assert session.calls == []


@pytest.mark.parametrize("query", ["/clear", "/CLEAR", " /Clear "])
def test_clear_command_signals_history_reset(make_session, query):
    session = make_session()

    result = _gateway(session).ask(query)

    assert result.success
    assert result.action == CLEAR_HISTORY
    assert session.calls == []


def test_clear_with_trailing_words_is_a_normal_question(make_session, ok_response):
    session = make_session(ok_response("sure"))

    result = _gateway(session).ask("/clear all the things")

    assert result.action is None
    assert len(session.calls) == 1


def test_error_kinds_have_tags_and_messages():
    for kind in ErrorKind:
        assert kind.value == kind.name.lower()
        assert kind.message


def test_classify_response_directly():
    assert classify_response(200, '{"candidates": [{"content": {"parts": [{"text": "x"}]}}]}').text == "x"
    assert classify_response(500, "").error_kind is ErrorKind.NETWORK_ERROR
    assert classify_response(500, '{"error": "flat"}').error_kind is ErrorKind.NETWORK_ERROR


def test_no_retry_when_retries_are_disabled(make_session):
    session = make_session(requests.ConnectionError("refused"))

    result = _gateway(session, max_retries=0).ask("q")

    assert result.error_kind is ErrorKind.NETWORK_ERROR
    assert len(session.calls) == 1


def test_quota_errors_are_not_retried(make_session, error_response, ok_response):
    session = make_session(error_response(429, "RESOURCE_EXHAUSTED"), ok_response("late"))

    result = _gateway(session).ask("q")

    assert result.error_kind is ErrorKind.QUOTA_EXCEEDED
    assert len(session.calls) == 1


def test_failed_question_merges_into_the_next_user_turn(make_session, ok_response):
    session = make_session(ok_response())
    history = [ConversationTurn("user", "q0"), ConversationTurn("assistant", "a0"), ConversationTurn("user", "lost")]

    _gateway(session).ask("retry please", None, history)

    contents = session.calls[0]["json"]["contents"]
    assert [c["role"] for c in contents] == ["user", "model", "user"]
    assert contents[-1]["parts"][0] == {"text": "lost"}
    assert contents[-1]["parts"][1]["text"].endswith("retry please")
