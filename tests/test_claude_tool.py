"""Tests for the Claude model call."""

import asyncio

from claude_agent_sdk import AssistantMessage, TextBlock

from repair_agent.tools import ClaudeModelCall
from repair_agent.tools import claude_tool


def fake_client(messages, error=None):
    """Stand-in for ClaudeSDKClient that replays messages."""
    class FakeClient:
        instances = []

        def __init__(self, options=None):
            self.options = options
            self.prompts = []
            FakeClient.instances.append(self)

        async def __aenter__(self):
            if error is not None:
                raise error
            return self

        async def __aexit__(self, *exc_info):
            return False

        async def query(self, prompt):
            self.prompts.append(prompt)

        async def receive_response(self):
            for message in messages:
                yield message

    return FakeClient


class TestClaudeModelCall:
    """Tests for ClaudeModelCall."""

    def test_options_include_model_only_when_set(self):
        """Given no model, options should leave the SDK default in place."""
        # When
        default = ClaudeModelCall()._options()
        pinned = ClaudeModelCall(model="claude-sonnet-4-5")._options()

        # Then
        assert default.model is None
        assert pinned.model == "claude-sonnet-4-5"
        assert pinned.max_turns == 1
        assert pinned.system_prompt == claude_tool.REPAIR_SYSTEM_PROMPT

    def test_collects_text_blocks(self, monkeypatch):
        """Given assistant messages with text, should return the joined text."""
        # Given
        messages = [
            AssistantMessage(content=[TextBlock(text="const a = 1;")], model="claude-sonnet-4-5"),
            AssistantMessage(content=[TextBlock(text="\nconst b = 2;\n")], model="claude-sonnet-4-5"),
        ]
        client = fake_client(messages)
        monkeypatch.setattr(claude_tool, "ClaudeSDKClient", client)

        # When
        reply = asyncio.run(ClaudeModelCall()("fix this"))

        # Then
        assert reply == "const a = 1;\nconst b = 2;"
        assert client.instances[0].prompts == ["fix this"]

    def test_empty_reply_is_none(self, monkeypatch):
        """Given no text at all, should return None."""
        # Given
        monkeypatch.setattr(claude_tool, "ClaudeSDKClient", fake_client([]))

        # When / Then
        assert asyncio.run(ClaudeModelCall()("fix this")) is None

    def test_connection_failure_is_none(self, monkeypatch):
        """Given a client that fails to connect, should return None instead of raising."""
        # Given
        monkeypatch.setattr(claude_tool, "ClaudeSDKClient", fake_client([], error=ConnectionError("no cli")))

        # When / Then
        assert asyncio.run(ClaudeModelCall()("fix this")) is None
