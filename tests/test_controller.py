"""Tests for the Controller — indexing, jumps and the executor pipeline."""
import pytest

import catalog
from core.bot import RuleBot
from core.controller import flatten_rules
from core.exceptions import InvalidAttributeError, RuleNotFound, TransformFailure
from models.schemas import Rule, RuleFlow

FLOWS_SCRIPT = """
- flow: first
  rules:
    - message: one
      name: one
    - message: two
      name: two
- flow: second
  rules:
    - message: one
      name: one
    - message: two
      name: two
- message: last
  name: last
"""


class TestIndexing:
    def test_flatten_preserves_order_and_stamps_flow(self):
        rules = flatten_rules([
            Rule(message="top"),
            RuleFlow(flow="welcome", rules=[Rule(message="a"), Rule(message="b")]),
        ])
        assert [r.message for r in rules] == ["top", "a", "b"]
        assert [r.flow for r in rules] == [None, "welcome", "welcome"]

    def test_flows_are_flattened(self, make_bot):
        bot = make_bot(FLOWS_SCRIPT)
        assert len(bot.rules) == 5
        assert all(isinstance(r, Rule) for r in bot.rules)
        assert bot.rules[4].flow is None
        assert bot.controller.flow_indexes == {"first": 0, "second": 2}

    def test_scoped_and_global_names(self, make_bot):
        bot = make_bot(FLOWS_SCRIPT)
        indexes = bot.controller.indexes
        assert indexes["first.one"] == 0
        assert indexes["second.one"] == 2
        assert indexes["one"] == 2       # later duplicate wins
        assert indexes["last"] == 4

    def test_reindex_is_idempotent(self, make_bot):
        bot = make_bot(FLOWS_SCRIPT)
        before = dict(bot.controller.indexes)
        bot.controller.reindex()
        bot.controller.reindex()
        assert bot.controller.indexes == before
        assert len(bot.rules) == 5

    def test_add_rules_extends_indexes(self, make_bot):
        bot = make_bot(FLOWS_SCRIPT)
        bot.add_rules([{"message": "extra", "name": "extra"}])
        bot.add_rules("""
        - flow: third
          rules:
            - message: more
              name: more
        """)
        assert bot.controller.indexes["extra"] == 5
        assert bot.controller.indexes["third.more"] == 6
        assert bot.controller.flow_indexes["third"] == 6

    def test_resolve_jump_misses_are_typed(self, make_bot):
        bot = make_bot(FLOWS_SCRIPT)
        with pytest.raises(RuleNotFound) as exc:
            bot.controller.resolve_jump("nowhere")
        assert exc.value.target == "nowhere"
        with pytest.raises(RuleNotFound):
            bot.controller.resolve_jump("flow:nowhere")

    def test_unknown_type_is_invalid_attribute(self, make_bot):
        bot = make_bot([{"type": "Unknown"}])
        with pytest.raises(InvalidAttributeError):
            bot.controller.resolve_type(bot.rules[0])


class TestJumps:
    @pytest.mark.asyncio
    async def test_jump_skips_rules(self, make_bot):
        bot = make_bot("""
        - message: Step 1
          next: three
        - message: Skipped
          name: two
        - message: Step 3
          name: three
        """)
        await bot.start()
        assert bot.recorder.messages == ["Step 1", "Step 3"]

    @pytest.mark.asyncio
    async def test_jumps_inside_and_between_flows(self, make_bot):
        bot = make_bot("""
        - flow: first
          rules:
            - message: first.1
              next: two
            - message: skipped
            - message: first.2
              name: two
              next: second.two
        - flow: second
          rules:
            - message: second.1
              name: one
            - message: second.2
              name: two
              next: flow:third
        - flow: third
          rules:
            - message: third.1
        """)
        await bot.start()
        assert bot.recorder.messages == ["first.1", "first.2", "second.2", "third.1"]

    @pytest.mark.asyncio
    async def test_option_next_wins_over_rule_next(self, make_bot):
        bot = make_bot("""
        - message: Pick
          next: plain
          options:
            - value: a
              next: special
            - value: b
        - message: plain
          name: plain
          exit: true
        - message: special
          name: special
        """)
        await bot.start()
        await bot.hear("a")
        assert bot.recorder.messages == ["Pick", "special"]

    @pytest.mark.asyncio
    async def test_invalid_jump_ends_with_error(self, make_bot):
        bot = make_bot([{"message": "Hi", "next": "nowhere"}])
        await bot.start()
        assert bot.recorder.names == ["start", "typing", "typed", "talk", "error", "end"]
        assert isinstance(bot.recorder.errors[0], RuleNotFound)


class TestExecutorPipeline:
    @pytest.mark.asyncio
    async def test_multi_step_pipeline(self, make_bot):
        async def first(answer, rule, bot):
            return f"{answer} transformed"

        RuleBot.types.define("MultiStep", {"executors": [
            {"transform": first},
            {"transform": lambda answer, rule, bot: f"{answer} transformed2"},
        ]})
        bot = make_bot([{"message": "Hello", "name": "testStep", "type": "MultiStep"}])
        await bot.start()
        assert bot.store.get("executors.testStep.currentIdx") is None
        await bot.hear("answer")
        assert bot.store.get("executors.testStep.currentIdx") is None
        assert bot.store.get("output.testStep") == "answer transformed transformed2"
        assert len(bot.recorder.of("end")) == 1

    @pytest.mark.asyncio
    async def test_suspend_and_resume(self, make_bot):
        RuleBot.types.define("MultiStep2", {"executors": [
            lambda answer, rule, bot: f"{answer} transformed",
            lambda answer, rule, bot: f"{answer} transformed2",
            catalog.WaitForUserInput,
            lambda answer, rule, bot: f"{answer} transformed3",
        ]})
        bot = make_bot([{"message": "Hello", "name": "testStep2", "type": "MultiStep2"}])
        await bot.start()
        assert bot.store.get("executors.testStep2.currentIdx") is None

        await bot.hear("first answer")
        assert bot.store.get("executors.testStep2.currentIdx") == 3
        assert bot.store.get("waitingForAnswer") is True
        assert bot.recorder.messages == ["Hello"]

        await bot.hear("second answer")
        assert bot.store.get("executors.testStep2.currentIdx") is None
        assert bot.store.get("output.testStep2") == "second answer transformed3"
        assert len(bot.recorder.of("end")) == 1

    @pytest.mark.asyncio
    async def test_resume_from_handed_off_store(self, make_bot):
        RuleBot.types.define("TwoPart", {"executors": [
            "trim", "WaitForUserInput", lambda answer, rule, bot: answer.upper(),
        ]})
        script = [{"message": "Code?", "name": "code", "type": "TwoPart"}]
        bot = make_bot(script)
        bot.session("restored", store={
            "context": {},
            "output": {},
            "currentIdx": 0,
            "waitingForAnswer": True,
            "executors": {"code": {"currentIdx": 2}},
        })
        await bot.start()
        assert bot.recorder.messages == []
        await bot.hear("abc")
        assert bot.store.output() == {"code": "ABC"}

    @pytest.mark.asyncio
    async def test_unnamed_rule_checkpoint_key(self, make_bot):
        RuleBot.types.define("Pause", {"executors": ["WaitForUserInput"]})
        bot = make_bot(["Intro", {"message": "Go", "type": "Pause"}])
        await bot.start()
        await bot.hear("x")
        assert bot.store.get("executors.__rule_1.currentIdx") == 1

    @pytest.mark.asyncio
    async def test_transform_answer(self, make_bot):
        RuleBot.types.define("ValidTransform", {"executors": [
            {"transform": lambda answer, rule, bot: "Transformed"},
        ]})
        bot = make_bot([{"message": "Enter", "name": "value", "type": "ValidTransform"}])
        await bot.start()
        await bot.hear("Original")
        assert bot.recorder.of("end") == [({"value": "Transformed"}, "session")]

    @pytest.mark.asyncio
    async def test_failing_transform_is_a_hard_error(self, make_bot):
        custom = RuntimeError("Transform failed")

        async def fail(answer, rule, bot):
            raise custom

        RuleBot.types.define("InvalidTransform", {"executors": [{"transform": fail}]})
        bot = make_bot([{"message": "Enter", "name": "value", "type": "InvalidTransform"}])
        await bot.start()
        await bot.hear("Original")

        error = bot.recorder.errors[0]
        assert isinstance(error, TransformFailure)
        assert error.__cause__ is custom
        assert error.step == 0
        assert bot.recorder.names[-1] == "end"
        assert bot.recorder.messages == ["Enter"]

    @pytest.mark.asyncio
    async def test_named_executor_with_validators(self, make_bot):
        RuleBot.executors.define("digits", {
            "validators": [{"regex": r"^\d+$"}],
            "transform": lambda answer, rule, bot: int(answer),
        })
        RuleBot.types.define("Digits", {"executors": ["digits"], "warning": "Digits only"})
        bot = make_bot([{"message": "PIN?", "name": "pin", "type": "Digits"}])
        await bot.start()
        await bot.hear("12a")
        assert bot.recorder.messages == ["PIN?", "Digits only"]
        await bot.hear("123")
        assert bot.store.output() == {"pin": 123}

    @pytest.mark.asyncio
    async def test_unknown_executor_name_is_invalid_attribute(self, make_bot):
        RuleBot.types.define("Broken", {"executors": ["missing_step"]})
        bot = make_bot([{"message": "?", "type": "Broken"}])
        await bot.start()
        await bot.hear("x")
        error = bot.recorder.errors[0]
        assert isinstance(error, InvalidAttributeError)
        assert error.attribute == "executor"

    @pytest.mark.asyncio
    async def test_dotted_rule_name_checkpoint_is_one_key(self, make_bot):
        RuleBot.types.define("Later", {"executors": [
            "WaitForUserInput", lambda answer, rule, bot: answer.upper(),
        ]})
        bot = make_bot([{"message": "Code?", "name": "a.b", "type": "Later"}])
        await bot.start()
        await bot.hear("x")
        assert bot.store.get("executors") == {"a.b": {"currentIdx": 1}}
        await bot.hear("y")
        assert bot.store.output() == {"a.b": "Y"}
