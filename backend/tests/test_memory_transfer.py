"""Tests for cross-engine memory standardization and transfer."""

from datetime import datetime, timezone

from langchain_core.messages import AIMessage, HumanMessage

from agent.memory_transfer import (
    MemoryItemType,
    StandardizedMemoryItem,
    normalize_role,
    standardize_memory_item,
    transfer_memory,
)
from agent.strategies import CustomStrategy, LangChainStrategy, SimpleStrategy
from tests.fakes import MockLLM


class TestStandardize:

    def test_message_object(self):
        item = standardize_memory_item(HumanMessage(content="hello"))
        assert item.type == MemoryItemType.MESSAGE
        assert item.role == "user"
        assert item.content == "hello"

    def test_ai_message_role(self):
        item = standardize_memory_item(AIMessage(content="hi there"))
        assert item.role == "assistant"

    def test_message_timestamp_is_lifted_from_extras(self):
        msg = HumanMessage(content="x", additional_kwargs={"timestamp": "2024-01-01T00:00:00+00:00", "lang": "en"})
        item = standardize_memory_item(msg)
        assert item.timestamp == "2024-01-01T00:00:00+00:00"
        assert item.metadata == {"lang": "en"}

    def test_raw_string(self):
        item = standardize_memory_item("remember this")
        assert item.type == MemoryItemType.MESSAGE
        assert item.role == "user"
        assert item.content == "remember this"

    def test_structured_mapping(self):
        ts = datetime(2024, 5, 1, tzinfo=timezone.utc)
        item = standardize_memory_item(
            {"role": "assistant", "content": "answer", "timestamp": ts, "metadata": {"task_type": "chat"}}
        )
        assert item.type == MemoryItemType.STRUCTURED
        assert item.role == "assistant"
        assert item.content == "answer"
        assert item.timestamp == ts.isoformat()
        assert item.metadata == {"task_type": "chat"}

    def test_mapping_without_content_is_serialized(self):
        item = standardize_memory_item({"fact": "water boils at 100C"})
        assert item.type == MemoryItemType.STRUCTURED
        assert "water boils" in item.content
        assert item.role == "system"
        assert item.metadata == {"fact": "water boils at 100C"}

    def test_unknown_shape(self):
        item = standardize_memory_item(42)
        assert item.type == MemoryItemType.UNKNOWN
        assert item.content == "42"
        assert item.role == "system"

    def test_normalize_role(self):
        assert normalize_role("human") == "user"
        assert normalize_role("AI") == "assistant"
        assert normalize_role("function") == "tool"
        assert normalize_role(None) == "unknown"
        assert normalize_role("narrator") == "narrator"


class TestRoundTrip:
    """Native item -> StandardizedMemoryItem -> other engine keeps content and role."""

    async def test_message_shape_survives(self):
        source = [HumanMessage(content="What is REM sleep?"), AIMessage(content="A sleep phase.")]
        target = CustomStrategy(llm=MockLLM())

        report = await transfer_memory(source, target)

        assert report.transferred == 2
        assert report.complete
        restored = target.get_memory()
        assert [(m["role"], m["content"]) for m in restored] == [
            ("user", "What is REM sleep?"),
            ("assistant", "A sleep phase."),
        ]
        # and back again
        back = LangChainStrategy(llm=MockLLM())
        await transfer_memory(restored, back)
        messages = back.get_memory()
        assert isinstance(messages[0], HumanMessage)
        assert isinstance(messages[1], AIMessage)
        assert [m.content for m in messages] == ["What is REM sleep?", "A sleep phase."]

    async def test_structured_shape_survives(self):
        source = [
            {"role": "user", "content": "Compare coffee and tea", "timestamp": "t0", "metadata": {}},
            {"role": "assistant", "content": "Coffee has more caffeine", "timestamp": "t1", "metadata": {}},
        ]
        target = LangChainStrategy(llm=MockLLM())
        await transfer_memory(source, target)

        back = CustomStrategy(llm=MockLLM())
        await transfer_memory(target.get_memory(), back)
        assert [(m["role"], m["content"]) for m in back.get_memory()] == [
            ("user", "Compare coffee and tea"),
            ("assistant", "Coffee has more caffeine"),
        ]
        assert back.get_memory()[0]["timestamp"] == "t0"

    async def test_strings_into_simple_engine(self):
        target = SimpleStrategy(llm=MockLLM())
        await transfer_memory(["one", {"content": "two"}], target)
        assert target.get_memory() == ["one", "two"]


class TestPartialFailure:

    async def test_failed_items_are_counted_not_raised(self):
        class PickyStrategy(SimpleStrategy):
            async def load_standardized_memory(self, item: StandardizedMemoryItem) -> None:
                if item.content == "bad":
                    raise ValueError("cannot store this")
                await super().load_standardized_memory(item)

        target = PickyStrategy(llm=MockLLM())
        report = await transfer_memory(["good", "bad", "also good"], target)

        assert report.total == 3
        assert report.transferred == 2
        assert report.failed == 1
        assert not report.complete
        assert "cannot store this" in report.errors[0]
        assert target.get_memory() == ["good", "also good"]
