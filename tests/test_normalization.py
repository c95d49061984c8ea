"""Tests for the normalization pipeline."""

import pytest

from llmadapters.capabilities import Model, ModelCapabilities
from llmadapters.conversation import (
    BasicTurn,
    Conversation,
    ImagePart,
    MultiModalTurn,
    Role,
    TextPart,
    ToolCall,
    ToolInvocationTurn,
    ToolResultTurn,
)
from llmadapters.errors import InvalidConversationError, UnsupportedFeatureError
from llmadapters.normalization import (
    EMPTY_CONTENT,
    normalize,
    normalize_conversation,
    validate_options,
)
from llmadapters.options import ExecuteOptions, ResponseFormat


def make_model(completion_length=None, **flags) -> Model:
    """Build a test model with the given capability flags."""
    return Model(
        name="test-model",
        vendor_name="acme",
        provider_name="acme",
        completion_length=completion_length,
        capabilities=ModelCapabilities(**flags),
    )


def texts(conversation: Conversation) -> list[tuple[Role, str]]:
    return [(turn.role, turn.text_content()) for turn in conversation]


class TestSystemRewrites:
    """Tests for system role rewriting."""

    def test_system_becomes_user(self):
        """Test that system turns are demoted when unsupported."""
        conversation = Conversation([
            BasicTurn(Role.SYSTEM, "Be brief."),
            BasicTurn(Role.USER, "Hello"),
            BasicTurn(Role.ASSISTANT, "Hi"),
            BasicTurn(Role.SYSTEM, "Again."),
        ])

        result = normalize_conversation(conversation, make_model(supports_system=False))

        assert Role.SYSTEM not in result.roles()
        assert len(result) == len(conversation)

    def test_multiple_system_consolidated(self):
        """Test that only the first system turn stays."""
        conversation = Conversation([
            BasicTurn(Role.SYSTEM, "a"),
            BasicTurn(Role.SYSTEM, "b"),
            BasicTurn(Role.USER, "hi"),
        ])

        result = normalize_conversation(conversation, make_model(supports_multiple_system=False))

        assert texts(result) == [
            (Role.SYSTEM, "a"),
            (Role.USER, "b"),
            (Role.USER, "hi"),
        ]

    def test_demoted_systems_keep_order(self):
        """Test that k system turns leave one system and k-1 users in order."""
        conversation = Conversation([
            BasicTurn(Role.SYSTEM, "s1"),
            BasicTurn(Role.USER, "u1"),
            BasicTurn(Role.SYSTEM, "s2"),
            BasicTurn(Role.ASSISTANT, "a1"),
            BasicTurn(Role.SYSTEM, "s3"),
        ])

        result = normalize_conversation(conversation, make_model(supports_multiple_system=False))

        assert result.roles().count(Role.SYSTEM) == 1
        assert texts(result) == [
            (Role.SYSTEM, "s1"),
            (Role.USER, "u1"),
            (Role.USER, "s2"),
            (Role.ASSISTANT, "a1"),
            (Role.USER, "s3"),
        ]


class TestMergeRepeatingRoles:
    """Tests for merging consecutive same-role turns."""

    def test_merge_assistant_turns(self):
        """Test merging two assistant turns with a newline."""
        conversation = Conversation([
            BasicTurn(Role.USER, "hi"),
            BasicTurn(Role.ASSISTANT, "ok"),
            BasicTurn(Role.ASSISTANT, "sure"),
        ])

        result = normalize_conversation(conversation, make_model(supports_repeating_roles=False))

        assert texts(result) == [(Role.USER, "hi"), (Role.ASSISTANT, "ok\nsure")]

    def test_no_merge_when_supported(self):
        """Test that repeating roles are left alone by default."""
        conversation = Conversation([BasicTurn(Role.USER, "a"), BasicTurn(Role.USER, "b")])

        result = normalize_conversation(conversation, make_model())

        assert len(result) == 2

    def test_merge_with_multimodal(self):
        """Test that merging text with an image keeps both as parts."""
        conversation = Conversation([
            BasicTurn(Role.USER, "look"),
            MultiModalTurn(Role.USER, (ImagePart("https://x/cat.png"),)),
        ])

        result = normalize_conversation(
            conversation, make_model(supports_repeating_roles=False, supports_vision=True)
        )

        assert len(result) == 1
        merged = result.turns[0]
        assert isinstance(merged, MultiModalTurn)
        assert merged.parts == (TextPart("look"), ImagePart("https://x/cat.png"))

    def test_tool_turns_never_merged(self):
        """Test that tool results break runs and are kept separate."""
        calls = (ToolCall("c1", "f", "{}"), ToolCall("c2", "g", "{}"))
        conversation = Conversation([
            BasicTurn(Role.USER, "go"),
            ToolInvocationTurn(calls=calls),
            ToolResultTurn(call_id="c1", text="1"),
            ToolResultTurn(call_id="c2", text="2"),
        ])

        result = normalize_conversation(conversation, make_model(supports_repeating_roles=False))

        assert result.turns == conversation.turns


class TestContentShape:
    """Tests for multimodal flattening and vision checks."""

    def test_text_only_multimodal_flattened(self):
        """Test flattening a text-only multimodal turn."""
        conversation = Conversation([MultiModalTurn(Role.USER, (TextPart("a"), TextPart("b")))])

        result = normalize_conversation(conversation, make_model(supports_json_content=False))

        assert result.turns == [BasicTurn(Role.USER, "a\nb")]

    def test_image_without_vision(self):
        """Test that images fail on a non-vision model."""
        conversation = Conversation([
            MultiModalTurn(Role.USER, (TextPart("What is this?"), ImagePart("https://x/y.png"))),
        ])

        with pytest.raises(UnsupportedFeatureError) as exc_info:
            normalize(conversation, make_model(supports_vision=False))

        assert exc_info.value.feature == "vision"
        assert exc_info.value.model == "acme/acme/test-model"

    def test_image_with_vision(self):
        """Test that images pass through on a vision model."""
        turn = MultiModalTurn(Role.USER, (TextPart("What is this?"), ImagePart("https://x/y.png")))

        result = normalize_conversation(Conversation([turn]), make_model(supports_vision=True))

        assert result.turns == [turn]


class TestEmptyContentAndPadding:
    """Tests for empty content substitution and assistant edge padding."""

    def test_empty_content_substituted(self):
        """Test that empty text becomes the sentinel."""
        conversation = Conversation([BasicTurn(Role.USER, ""), BasicTurn(Role.ASSISTANT, "ok")])

        result = normalize_conversation(conversation, make_model(supports_empty_content=False))

        assert texts(result) == [(Role.USER, EMPTY_CONTENT), (Role.ASSISTANT, "ok")]

    def test_empty_tool_result_substituted(self):
        """Test that empty tool results keep their type and call id."""
        conversation = Conversation([
            ToolInvocationTurn(calls=(ToolCall("c1", "f", "{}"),)),
            ToolResultTurn(call_id="c1", text=""),
        ])

        result = normalize_conversation(conversation, make_model(supports_empty_content=False))

        assert result.turns[1] == ToolResultTurn(call_id="c1", text=EMPTY_CONTENT)

    def test_trailing_assistant_padded(self):
        """Test appending a user turn after a trailing assistant turn."""
        conversation = Conversation([BasicTurn(Role.USER, "hi"), BasicTurn(Role.ASSISTANT, "ok")])

        result = normalize_conversation(
            conversation, make_model(supports_last_assistant=False, supports_empty_content=False)
        )

        assert len(result) == len(conversation) + 1
        assert result.turns[-1] == BasicTurn(Role.USER, EMPTY_CONTENT)

    def test_padding_is_empty_when_allowed(self):
        """Test that padding uses plain empty text when empty content is supported."""
        conversation = Conversation([BasicTurn(Role.USER, "hi"), BasicTurn(Role.ASSISTANT, "ok")])

        result = normalize_conversation(conversation, make_model(supports_last_assistant=False))

        assert result.turns[-1] == BasicTurn(Role.USER, "")

    def test_leading_assistant_padded(self):
        """Test prepending a user turn before a leading assistant turn."""
        conversation = Conversation([BasicTurn(Role.ASSISTANT, "Welcome"), BasicTurn(Role.USER, "hi")])

        result = normalize_conversation(conversation, make_model(supports_first_assistant=False))

        assert result.roles() == [Role.USER, Role.ASSISTANT, Role.USER]


class TestOnlyRoleValidation:
    """Tests for single-role conversation checks."""

    def test_only_system_rejected(self):
        """Test rejecting a system-only conversation."""
        conversation = Conversation([BasicTurn(Role.SYSTEM, "rules")])

        with pytest.raises(UnsupportedFeatureError) as exc_info:
            normalize(conversation, make_model(supports_only_system=False))

        assert exc_info.value.feature == "only_system"

    def test_only_assistant_rejected(self):
        """Test rejecting an assistant-only conversation."""
        conversation = Conversation([BasicTurn(Role.ASSISTANT, "a"), BasicTurn(Role.ASSISTANT, "b")])

        with pytest.raises(UnsupportedFeatureError) as exc_info:
            normalize(conversation, make_model(supports_only_assistant=False))

        assert exc_info.value.feature == "only_assistant"

    def test_padding_avoids_only_assistant(self):
        """Test that padding runs before the single-role check."""
        conversation = Conversation([BasicTurn(Role.ASSISTANT, "a")])

        result = normalize_conversation(
            conversation,
            make_model(supports_only_assistant=False, supports_last_assistant=False),
        )

        assert result.roles() == [Role.ASSISTANT, Role.USER]


class TestStructuralValidation:
    """Tests for structural conversation errors."""

    def test_empty_conversation(self):
        """Test that an empty conversation is invalid."""
        with pytest.raises(InvalidConversationError):
            normalize(Conversation(), make_model())

    def test_unknown_tool_call_id(self):
        """Test that a tool result must answer an earlier call."""
        conversation = Conversation([
            BasicTurn(Role.USER, "go"),
            ToolResultTurn(call_id="missing", text="1"),
        ])

        with pytest.raises(InvalidConversationError):
            normalize(conversation, make_model())


class TestOptionValidation:
    """Tests for option checks and max_tokens clamping."""

    @pytest.mark.parametrize("options, flag, feature", [
        (ExecuteOptions(tools=({"type": "function"},)), "supports_tools", "tools"),
        (ExecuteOptions(temperature=0.2), "supports_temperature", "temperature"),
        (ExecuteOptions(n=2), "supports_n", "n"),
        (ExecuteOptions(response_format=ResponseFormat.json()), "supports_json_output", "json_output"),
        (ExecuteOptions(user="u-1"), "supports_user", "user"),
        (ExecuteOptions(tool_choice="auto"), "supports_tool_choice", "tool_choice"),
    ])
    def test_unsupported_option(self, options, flag, feature):
        """Test that each requested but unsupported option fails by name."""
        conversation = Conversation([BasicTurn(Role.USER, "hi")])

        with pytest.raises(UnsupportedFeatureError) as exc_info:
            normalize(conversation, make_model(**{flag: False}), options)

        assert exc_info.value.feature == feature

    def test_tool_choice_required(self):
        """Test tool_choice="required" against a model lacking it."""
        model = make_model(supports_tools=True, supports_tool_choice=True, supports_tool_choice_required=False)
        options = ExecuteOptions(tools=({"type": "function"},), tool_choice="required")

        with pytest.raises(UnsupportedFeatureError) as exc_info:
            normalize(Conversation([BasicTurn(Role.USER, "hi")]), model, options)

        assert exc_info.value.feature == "tool_choice_required"

    def test_required_without_any_tool_choice(self):
        """Test that the plain tool_choice check runs before the required one."""
        model = make_model(supports_tools=True, supports_tool_choice=False, supports_tool_choice_required=False)
        options = ExecuteOptions(tools=({"type": "function"},), tool_choice="required")

        with pytest.raises(UnsupportedFeatureError) as exc_info:
            normalize(Conversation([BasicTurn(Role.USER, "hi")]), model, options)

        assert exc_info.value.feature == "tool_choice"

    def test_single_choice_allowed_without_n(self):
        """Test that n=1 is not an n>1 request."""
        conversation = Conversation([BasicTurn(Role.USER, "hi")])

        _, options = normalize(conversation, make_model(supports_n=False), ExecuteOptions(n=1))

        assert options.n == 1

    def test_streaming_checked_only_when_streaming(self):
        """Test that streaming support matters only for streamed calls."""
        conversation = Conversation([BasicTurn(Role.USER, "hi")])
        model = make_model(supports_streaming=False)

        normalize(conversation, model)
        with pytest.raises(UnsupportedFeatureError) as exc_info:
            normalize(conversation, model, stream=True)

        assert exc_info.value.feature == "streaming"

    def test_max_tokens_clamped(self):
        """Test that max_tokens is clamped, never rejected."""
        conversation = Conversation([BasicTurn(Role.USER, "hi")])

        _, options = normalize(conversation, make_model(completion_length=100), ExecuteOptions(max_tokens=5000))

        assert options.max_tokens == 100

    def test_max_tokens_below_limit_kept(self):
        """Test that smaller max_tokens values pass through."""
        options = validate_options(ExecuteOptions(max_tokens=50), ModelCapabilities(), "m", completion_length=100)

        assert options.max_tokens == 50

    def test_max_tokens_without_limit(self):
        """Test that an unknown completion limit leaves max_tokens alone."""
        options = validate_options(ExecuteOptions(max_tokens=5000), ModelCapabilities(), "m")

        assert options.max_tokens == 5000


class TestPipelineGuarantees:
    """Tests for purity and idempotence."""

    RESTRICTIVE = dict(
        supports_system=True,
        supports_multiple_system=False,
        supports_repeating_roles=False,
        supports_empty_content=False,
        supports_json_content=False,
        supports_first_assistant=False,
        supports_last_assistant=False,
    )

    def sample(self) -> Conversation:
        return Conversation([
            BasicTurn(Role.ASSISTANT, "Welcome"),
            BasicTurn(Role.SYSTEM, "a"),
            BasicTurn(Role.SYSTEM, "b"),
            BasicTurn(Role.USER, ""),
            MultiModalTurn(Role.USER, (TextPart("x"), TextPart("y"))),
            BasicTurn(Role.ASSISTANT, "ok"),
            BasicTurn(Role.ASSISTANT, "sure"),
        ])

    def test_input_not_mutated(self):
        """Test that the caller's conversation is left untouched."""
        conversation = self.sample()
        before = list(conversation.turns)

        normalize(conversation, make_model(**self.RESTRICTIVE))

        assert conversation.turns == before

    def test_idempotent(self):
        """Test that normalizing twice changes nothing the second time."""
        model = make_model(**self.RESTRICTIVE)

        once = normalize_conversation(self.sample(), model)
        twice = normalize_conversation(once, model)

        assert twice == once

    def test_deterministic(self):
        """Test that identical inputs give identical outputs."""
        model = make_model(**self.RESTRICTIVE)

        assert normalize_conversation(self.sample(), model) == normalize_conversation(self.sample(), model)

    def test_failure_leaves_input_intact(self):
        """Test that a late validation failure does not mutate the input."""
        conversation = self.sample()
        before = list(conversation.turns)

        with pytest.raises(UnsupportedFeatureError):
            normalize(conversation, make_model(supports_temperature=False, **self.RESTRICTIVE),
                      ExecuteOptions(temperature=0.5))

        assert conversation.turns == before
