"""Tests for the message helpers in ollie.llm.types."""

from __future__ import annotations

import pytest

from ollie.llm.types import Message, Role, Usage, remove_tag


class TestRemoveTag:
    @pytest.mark.parametrize(
        "text, tag, expected",
        [
            ("Hello <div>unwanted content</div> world!", "div", "Hello  world!"),
            ('Hello <span class="highlight">unwanted content</span> world!', "span", "Hello  world!"),
            ("Hello <div>first</div> and <div>second</div> world!", "div", "Hello  and  world!"),
            ("Hello <div><span>nested content</span></div> world!", "div", "Hello  world!"),
        ],
    )
    def test_removes_spans(self, text, tag, expected):
        assert remove_tag(text, tag) == expected

    def test_no_matching_tag(self):
        assert remove_tag("Hello world!", "div") is None

    def test_empty_string(self):
        assert remove_tag("", "div") is None

    def test_self_closing_tag_ignored(self):
        assert remove_tag('Hello <img src="test.jpg" /> world!', "img") is None

    def test_unclosed_tag_left_alone(self):
        assert remove_tag("a <think>still going", "think") is None


class TestRemoveThinking:
    def test_think_block_removed(self):
        msg = Message.assistant("Here's my response. <think>Let me think about this...</think> The answer is 42.")

        cleaned = msg.remove_thinking()

        assert cleaned is not None
        assert cleaned.role is Role.ASSISTANT
        assert cleaned.content == "Here's my response.  The answer is 42."
        # The original is untouched.
        assert "<think>" in msg.content

    def test_no_think_tags(self):
        assert Message.user("Just a regular message without thinking tags.").remove_thinking() is None

    def test_empty_content(self):
        assert Message(role=Role.ASSISTANT).remove_thinking() is None

    def test_multiple_blocks(self):
        msg = Message.assistant("Start <think>first thought</think> middle <think>second thought</think> end.")
        assert msg.remove_thinking().content == "Start  middle  end."

    def test_attributes_on_think_tag(self):
        msg = Message.assistant('Response <think type="analysis">detailed thinking</think> continues.')
        assert msg.remove_thinking().content == "Response  continues."

    def test_other_fields_are_kept(self):
        usage = Usage(prompt_tokens=3, completion_tokens=5)
        msg = Message(role=Role.ASSISTANT, content="<think>x</think>ok", model="qwen3", usage=usage)

        cleaned = msg.remove_thinking()

        assert cleaned.content == "ok"
        assert cleaned.model == "qwen3"
        assert cleaned.usage is usage
