import json

from sheet_analyst.gateway import ErrorKind, GatewayResult
from sheet_analyst.history import ConversationTurn, JsonHistoryStore, append_exchange


def test_append_exchange_on_success_adds_both_turns():
    history = [ConversationTurn("user", "hi"), ConversationTurn("assistant", "hello")]

    updated = append_exchange(history, "total?", GatewayResult(success=True, text="42"))

    assert updated[-2:] == [ConversationTurn("user", "total?"), ConversationTurn("assistant", "42")]
    assert len(history) == 2


def test_append_exchange_on_failure_keeps_only_the_question():
    updated = append_exchange([], "total?", GatewayResult.failure(ErrorKind.NETWORK_ERROR))

    assert updated == [ConversationTurn("user", "total?")]


def test_json_store_save_load_and_clear(tmp_path):
    path = tmp_path / "chat" / "history.json"
    store = JsonHistoryStore(str(path))

    assert store.load() == []
    store.save([ConversationTurn("user", "héllo"), ConversationTurn("assistant", "hi")])

    assert json.loads(path.read_text(encoding="utf-8"))[0] == {"role": "user", "content": "héllo"}
    assert store.load()[1] == ConversationTurn("assistant", "hi")

    store.clear()
    assert not path.exists()
    assert store.load() == []
