import json
from unittest.mock import MagicMock, patch

import pytest
from nacl.signing import SigningKey

from app.interactions import (
    InteractionHandler,
    command_definitions,
    extract_command,
    verify_signature,
)
from clients.baseclient import ChannelError

TIMESTAMP = "1672531200"


@pytest.fixture
def signing_key():
    return SigningKey.generate()


@pytest.fixture
def handler(signing_key):
    return InteractionHandler(
        commands=MagicMock(),
        client=MagicMock(),
        application_id=99,
        public_key=signing_key.verify_key.encode().hex(),
    )


def sign(key: SigningKey, body: bytes) -> str:
    return key.sign(TIMESTAMP.encode() + body).signature.hex()


def command_payload(name: str, options: list[dict]) -> dict:
    return {
        "type": 2,
        "token": "interaction-token",
        "guild_id": "1000",
        "channel_id": "5",
        "member": {"user": {"id": "7"}},
        "data": {
            "name": "train",
            "options": [{"type": 1, "name": name, "options": options}],
        },
    }


def test_verify_signature(signing_key):
    public_key = signing_key.verify_key.encode().hex()
    body = b'{"type": 1}'
    assert verify_signature(public_key, sign(signing_key, body), TIMESTAMP, body)
    assert not verify_signature(public_key, sign(signing_key, body), TIMESTAMP, b"{}")
    assert not verify_signature(public_key, "zz", TIMESTAMP, body)


def test_ping(handler, signing_key):
    body = b'{"type": 1}'
    assert handler.handle(body, sign(signing_key, body), TIMESTAMP) == (200, {"type": 1})


def test_bad_signature(handler):
    status, _ = handler.handle(b'{"type": 1}', "00" * 64, TIMESTAMP)
    assert status == 401


def test_command_is_deferred(handler, signing_key):
    handler.executor = MagicMock()
    payload = command_payload("reset", [])
    body = json.dumps(payload).encode()
    status, response = handler.handle(body, sign(signing_key, body), TIMESTAMP)

    assert status == 200
    assert response == {"type": 5, "data": {"flags": 64}}
    handler.executor.submit.assert_called_once_with(handler.run, payload)


def test_commands_run_on_shared_pool(handler, signing_key):
    handler.commands.execute.return_value = "ok"
    for _ in range(3):
        body = json.dumps(command_payload("reset", [])).encode()
        handler.handle(body, sign(signing_key, body), TIMESTAMP)
    handler.executor.shutdown(wait=True)

    assert handler.commands.execute.call_count == 3
    assert handler.client.edit_original_response.call_count == 3


def test_worker_failure_is_logged(handler, signing_key):
    handler.client.edit_original_response.side_effect = RuntimeError("boom")
    body = json.dumps(command_payload("reset", [])).encode()
    with patch.object(handler.logger, "error") as mock_error:
        handler.handle(body, sign(signing_key, body), TIMESTAMP)
        handler.executor.shutdown(wait=True)

    mock_error.assert_called_once()
    assert isinstance(mock_error.call_args.kwargs["exc_info"], RuntimeError)


def test_extract_command():
    payload = command_payload(
        "scout",
        [
            {"type": 3, "name": "world", "value": "maduin"},
            {"type": 3, "name": "expac", "value": "EW"},
        ],
    )
    assert extract_command(payload["data"]) == ("scout", {"world": "maduin", "expac": "EW"})
    assert extract_command({"name": "delete_message", "options": []}) == ("delete_message", {})


def test_run_replies_with_command_result(handler):
    handler.commands.execute.return_value = "Maduin Endwalker Train has been reset."
    payload = command_payload("reset", [{"type": 3, "name": "world", "value": "maduin"}])

    reply = handler.run(payload)

    assert reply == "Maduin Endwalker Train has been reset."
    handler.commands.execute.assert_called_once_with(
        "reset", {"world": "maduin"}, guild_id=1000, channel_id=5, user_id=7
    )
    handler.client.edit_original_response.assert_called_once_with(
        99, "interaction-token", reply
    )


def test_run_survives_reply_failure(handler):
    handler.commands.execute.return_value = "ok"
    handler.client.edit_original_response.side_effect = ChannelError("gone", 404)
    assert handler.run(command_payload("reset", [])) == "ok"


def test_command_definitions_use_choices():
    (train, delete) = command_definitions()
    subcommands = {o["name"]: o for o in train["options"]}
    assert set(subcommands) == {
        "scout",
        "start",
        "done",
        "reset",
        "create_monitor",
        "create_dashboard",
    }
    world = subcommands["scout"]["options"][0]
    assert {"name": "Maduin", "value": "maduin"} in world["choices"]
    assert delete["name"] == "delete_message"
