from unittest.mock import MagicMock, patch

import pytest
import requests

from clients.baseclient import (
    ChannelError,
    Embed,
    EmbedField,
    ForbiddenError,
    LinkButton,
    MessageContent,
    NotFoundError,
)
from clients.discord import DiscordClient, to_payload


def make_response(status: int, json=None, headers=None):
    response = MagicMock()
    response.status_code = status
    response.headers = headers or {}
    response.content = b"{}" if json is not None else b""
    response.json.return_value = json
    if status >= 400:
        response.raise_for_status.side_effect = requests.HTTPError(response=response)
    return response


def make_client(*responses) -> DiscordClient:
    session = MagicMock()
    session.headers = {}
    session.request.side_effect = list(responses)
    return DiscordClient("token", session=session, retry_sleep=0)


def test_auth_header():
    client = make_client()
    assert client.session.headers["Authorization"] == "Bot token"


def test_send_returns_message_id():
    client = make_client(make_response(200, {"id": "123"}))
    content = MessageContent(content="Initializing dashboard...")

    assert client.send(42, content) == 123
    method, url = client.session.request.call_args.args
    assert method == "POST"
    assert url == "https://discord.com/api/v10/channels/42/messages"
    assert client.session.request.call_args.kwargs["json"] == to_payload(content)


def test_fetch():
    client = make_client(make_response(200, {"id": "9", "channel_id": "42", "content": "hi"}))
    message = client.fetch(42, 9)
    assert (message.id, message.channel_id, message.content) == (9, 42, "hi")


@pytest.mark.parametrize("status, error", [(404, NotFoundError), (403, ForbiddenError)])
def test_stale_errors(status, error):
    client = make_client(make_response(status))
    with pytest.raises(error):
        client.fetch(42, 9)


def test_client_error_is_not_stale():
    client = make_client(make_response(400))
    with pytest.raises(ChannelError) as e:
        client.edit(42, 9, MessageContent())
    assert not isinstance(e.value, (NotFoundError, ForbiddenError))
    assert e.value.status == 400


@patch("clients.discord.time.sleep")
def test_rate_limit_is_retried(mock_sleep):
    client = make_client(
        make_response(429, headers={"Retry-After": "1.5"}),
        make_response(204),
    )
    client.edit(42, 9, MessageContent())

    mock_sleep.assert_called_once_with(1.5)
    assert client.session.request.call_count == 2


@patch("clients.discord.time.sleep")
def test_server_errors_give_up(mock_sleep):
    client = make_client(*(make_response(502) for _ in range(3)))
    with pytest.raises(ChannelError):
        client.fetch(42, 9)
    assert client.session.request.call_count == 3


def test_connection_error():
    client = make_client(requests.ConnectionError("refused"))
    with pytest.raises(ChannelError) as e:
        client.fetch(42, 9)
    assert e.value.status is None


def test_payload():
    content = MessageContent(
        embeds=(Embed(title="t", fields=(EmbedField("a", "b", inline=True),)),),
        components=((LinkButton("Scouted Map", "https://example.com"),),),
    )
    assert to_payload(content) == {
        "content": "",
        "embeds": [{"title": "t", "fields": [{"name": "a", "value": "b", "inline": True}]}],
        "components": [
            {
                "type": 1,
                "components": [
                    {"type": 2, "style": 5, "label": "Scouted Map", "url": "https://example.com"}
                ],
            }
        ],
    }
