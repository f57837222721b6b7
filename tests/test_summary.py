"""Tests for the summarize strategy."""

import pytest

from pipy_prompt import (
    AmbientContext,
    CompletionResult,
    ConfigurationError,
    InMemoryStore,
    Layout,
    PromptMessage,
    ReasoningPart,
    TextPart,
    ToolCallPart,
    ToolResultPart,
    fit,
    layout_to_text,
    message,
    region,
    render,
    serialize_layout,
    summary_region,
)
from pipy_prompt.summary import (
    SUMMARIZATION_SYSTEM_PROMPT,
    SUMMARY_PREFIX,
    SummarizerContext,
    build_summary_layout,
    default_summarizer,
)


class FakeProvider:
    """Completion provider that records its requests."""

    def __init__(self, text="condensed"):
        self.text = text
        self.layouts = []

    async def complete(self, layout):
        self.layouts.append(layout)
        return CompletionResult(text=self.text, model="fake")


class FailingProvider:
    async def complete(self, layout):
        raise RuntimeError("model unavailable")


class AsyncStore:
    def __init__(self):
        self.data = {}

    async def get(self, key):
        return self.data.get(key)

    async def set(self, key, value):
        self.data[key] = value


def conversation(store, summarizer=None):
    return region(
        message("system", "Be brief."),
        message(
            "user",
            summary_region("A" * 200, id="conv", store=store, summarizer=summarizer, priority=1),
        ),
    )


class TestSummarize:
    @pytest.mark.asyncio
    async def test_replaces_content_with_summary(self):
        calls = []

        def summarizer(ctx):
            calls.append(ctx)
            return "S"

        store = InMemoryStore()
        layout = await render(conversation(store, summarizer), budget=30)
        text = layout_to_text(layout)

        assert len(calls) == 1
        assert calls[0].target.children == ("A" * 200,)
        assert calls[0].previous_summary is None
        assert "S" in text
        assert len(text) < 200
        assert layout.messages[1].text == f"{SUMMARY_PREFIX}S"

    @pytest.mark.asyncio
    async def test_result_has_no_strategy(self):
        store = InMemoryStore()
        result = await fit(conversation(store, lambda ctx: "S"), 30)

        summarized = result.children[1].children[0]
        assert summarized.id == "conv"
        assert summarized.strategy is None
        assert summarized.children == (f"{SUMMARY_PREFIX}S",)

    @pytest.mark.asyncio
    async def test_summary_persisted(self):
        store = InMemoryStore()
        await fit(conversation(store, lambda ctx: "S"), 30)
        assert store.get("conv").content == "S"

    @pytest.mark.asyncio
    async def test_previous_summary_passed_on_next_run(self):
        previous = []

        def summarizer(ctx):
            previous.append(ctx.previous_summary)
            return f"summary {len(previous)}"

        store = InMemoryStore()
        tree = conversation(store, summarizer)
        await fit(tree, 30)
        await fit(tree, 30)

        assert previous == [None, "summary 1"]
        assert store.get("conv").content == "summary 2"

    @pytest.mark.asyncio
    async def test_async_summarizer_and_store(self):
        async def summarizer(ctx):
            return "async summary"

        store = AsyncStore()
        await fit(conversation(store, summarizer), 30)
        assert store.data["conv"].content == "async summary"

    @pytest.mark.asyncio
    async def test_summarized_messages_become_a_message(self):
        store = InMemoryStore()
        tree = region(
            message("system", "sys"),
            summary_region(
                message("user", "a" * 100),
                message("assistant", "b" * 100),
                id="history",
                store=store,
                summarizer=lambda ctx: "short",
                priority=1,
            ),
            message("user", "now"),
        )

        layout = await render(tree, budget=30)

        assert layout.roles == ["system", "system", "user"]
        assert layout.messages[1].text == f"{SUMMARY_PREFIX}short"

    @pytest.mark.asyncio
    async def test_missing_provider_is_configuration_error(self):
        store = InMemoryStore()
        with pytest.raises(ConfigurationError, match="conv"):
            await fit(conversation(store), 30)
        assert store.get("conv") is None


class TestDefaultSummarizer:
    @pytest.mark.asyncio
    async def test_uses_ambient_provider(self):
        provider = FakeProvider()
        store = InMemoryStore()

        await fit(conversation(store), 30, context=AmbientContext(provider=provider))

        assert store.get("conv").content == "condensed"
        request = provider.layouts[0]
        assert request.roles == ["system", "user"]
        assert request.messages[0].text == SUMMARIZATION_SYSTEM_PROMPT
        assert f"<conversation>\n[User]: {'A' * 200}\n</conversation>" in request.messages[1].text
        assert "<previous-summary>" not in request.messages[1].text

    @pytest.mark.asyncio
    async def test_update_includes_previous_summary(self):
        provider = FakeProvider()
        store = InMemoryStore()
        tree = conversation(store)

        await fit(tree, 30, context=AmbientContext(provider=provider))
        await fit(tree, 30, context=AmbientContext(provider=provider))

        second = provider.layouts[1].messages[1].text
        assert "<previous-summary>\ncondensed\n</previous-summary>" in second

    @pytest.mark.asyncio
    async def test_provider_attached_to_ancestor(self):
        provider = FakeProvider("from ancestor")
        store = InMemoryStore()
        tree = region(conversation(store), context=AmbientContext(provider=provider))

        await fit(tree, 30)

        assert store.get("conv").content == "from ancestor"

    @pytest.mark.asyncio
    async def test_provider_error_propagates(self):
        store = InMemoryStore()
        with pytest.raises(RuntimeError, match="model unavailable"):
            await fit(conversation(store), 30, context=AmbientContext(provider=FailingProvider()))
        assert store.get("conv") is None

    @pytest.mark.asyncio
    async def test_mapping_result(self):
        class DictProvider:
            async def complete(self, layout):
                return {"text": "from dict"}

        store = InMemoryStore()
        await fit(conversation(store), 30, context=AmbientContext(provider=DictProvider()))

        assert store.get("conv").content == "from dict"

    @pytest.mark.asyncio
    async def test_plain_string_result(self):
        class SyncProvider:
            def complete(self, layout):
                return "plain"

        ctx = SummarizerContext(target=region("text"), provider=SyncProvider())
        assert await default_summarizer(ctx) == "plain"

    @pytest.mark.asyncio
    async def test_requires_provider(self):
        with pytest.raises(ConfigurationError):
            await default_summarizer(SummarizerContext(target=region("text")))


class TestSerializeLayout:
    def test_transcript(self):
        layout = Layout(
            messages=[
                PromptMessage(role="user", parts=[TextPart(text="hi")]),
                PromptMessage(
                    role="assistant",
                    parts=[
                        ReasoningPart(text="r"),
                        TextPart(text="ok"),
                        ToolCallPart(tool_call_id="c1", tool_name="search", input={"q": "x"}),
                    ],
                ),
                PromptMessage(
                    role="tool",
                    parts=[ToolResultPart(tool_call_id="c1", tool_name="search", output="found")],
                ),
                PromptMessage(role="critic", parts=[TextPart(text="meh")]),
            ]
        )

        assert serialize_layout(layout) == (
            "[User]: hi\n\n"
            "[Assistant thinking]: r\n\n"
            "[Assistant]: ok\n\n"
            "[Assistant tool calls]: search(q='x')\n\n"
            "[Tool result]: found\n\n"
            "[Critic]: meh"
        )

    def test_build_summary_layout_for_messages(self):
        target = region(message("user", "question"), message("assistant", "answer"))
        layout = build_summary_layout(target, previous_summary=None)

        assert "[User]: question\n\n[Assistant]: answer" in layout.messages[1].text
