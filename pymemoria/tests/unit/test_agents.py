"""Unit tests for the LLM condensation layer.

The language model is always mocked; no network calls are made.
"""

import pytest

from pymemoria.config import LangfuseConfig, LLMConfig
from pymemoria.core.agents.llm_controller import InvalidResponseError, LanguageModel, LLMController
from pymemoria.core.agents.llm_provider import LangChainOpenRouterModel
from pymemoria.core.agents.summarizer import SummaryCondenser, parse_condensed_summary


class TestParseCondensedSummary:
    """Test model reply parsing."""

    def test_json_reply(self):
        """Test parsing a JSON reply."""
        assert parse_condensed_summary('{"condensed_summary": "  It was a busy week. "}') == "It was a busy week."

    def test_fenced_json_reply(self):
        """Test parsing JSON wrapped in a code fence."""
        reply = '```json\n{"condensed_summary": "Fenced."}\n```'
        assert parse_condensed_summary(reply) == "Fenced."

    def test_plain_text_reply(self):
        """Test that plain text is used as the summary."""
        assert parse_condensed_summary("Just prose.\n") == "Just prose."

    def test_empty_reply_raises(self):
        """Test that an empty reply is rejected."""
        with pytest.raises(InvalidResponseError):
            parse_condensed_summary("   ")

    def test_json_without_summary_raises(self):
        """Test that JSON without condensed_summary is rejected."""
        with pytest.raises(InvalidResponseError):
            parse_condensed_summary('{"summary": "wrong key"}')


class TestLLMController:
    """Test the retry policy."""

    def test_retries_until_success(self, mocker):
        """Test that the controller retries failed calls."""
        model = mocker.Mock(spec=LanguageModel)
        model.generate_with_system_prompt.side_effect = [RuntimeError("rate limited"), "ok"]
        controller = LLMController(model, max_retries=3)

        assert controller.generate("system", "user") == "ok"
        assert model.generate_with_system_prompt.call_count == 2

    def test_raises_last_error_after_retries(self, mocker):
        """Test that the last error is raised once retries run out."""
        model = mocker.Mock(spec=LanguageModel)
        model.generate_with_system_prompt.side_effect = RuntimeError("down")
        controller = LLMController(model, max_retries=2)

        with pytest.raises(RuntimeError, match="down"):
            controller.generate("system", "user")
        assert model.generate_with_system_prompt.call_count == 2


class TestSummaryCondenser:
    """Test condensation prompts."""

    def test_condense_builds_prompts(self, mocker):
        """Test the prompts sent for a condensation."""
        controller = mocker.Mock(spec=LLMController)
        controller.generate.return_value = '{"condensed_summary": "Merged."}'
        condenser = SummaryCondenser(controller, agent_name="noot", current_summaries=lambda: "ACTIVE")

        result = condenser(["first", "second"], "### FRAMING\n\n")

        assert result == "Merged."
        system_prompt, user_prompt = controller.generate.call_args.args
        assert "ACTIVE" in system_prompt
        assert "noot" in system_prompt
        assert user_prompt == "### FRAMING\n\n[CURRENT SUMMARIES TO CONDENSE]\n\nfirst\n\nsecond"

    def test_condense_propagates_invalid_reply(self, mocker):
        """Test that an unusable reply surfaces as an error."""
        controller = mocker.Mock(spec=LLMController)
        controller.generate.return_value = ""
        with pytest.raises(InvalidResponseError):
            SummaryCondenser(controller, agent_name="noot")(["a"], "f")


class TestLangChainOpenRouterModel:
    """Test the LangChain adapter with ChatOpenAI mocked."""

    def test_generate_with_system_prompt(self, mocker):
        """Test generation with a system prompt through ChatOpenAI."""
        chat_cls = mocker.patch("pymemoria.core.agents.llm_provider.ChatOpenAI")
        chat_cls.return_value.invoke.return_value = mocker.Mock(content="reply")

        model = LangChainOpenRouterModel(
            LLMConfig(api_key="key", model_name="test/model"),
            LangfuseConfig(enabled=False)
        )
        assert model.generate_with_system_prompt("sys", "user") == "reply"
        assert model.model_name == "test/model"

        messages = chat_cls.return_value.invoke.call_args.args[0]
        assert [m.content for m in messages] == ["sys", "user"]

    def test_sample_text_applies_terminators(self, mocker):
        """Test that sampled text is cut at terminators."""
        chat_cls = mocker.patch("pymemoria.core.agents.llm_provider.ChatOpenAI")
        chat_cls.return_value.invoke.return_value = mocker.Mock(content="answer END ignored")

        model = LangChainOpenRouterModel(LLMConfig(api_key="key"), LangfuseConfig(enabled=False))
        assert model.sample_text("prompt", terminators=("END",)) == "answer "
