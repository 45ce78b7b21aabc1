"""
Tests for the resilient invoker:
- Response parsing (fences, malformed JSON, incomplete entries)
- Rate gate spacing per model tier
- Tier degradation on rate limits
- Exponential backoff, retry exhaustion and non-retryable errors
"""
import pytest
from unittest.mock import MagicMock

from diff_reviewer.config import Config
from diff_reviewer.invoker import (
    BATCH_MAX_OUTPUT_TOKENS, SINGLE_MAX_OUTPUT_TOKENS, ResilientInvoker,
    parse_review_response, rate_limit_interval, strip_code_fence,
)
from diff_reviewer.llm.base import ModelCallError
from diff_reviewer.review.position_resolver import ReviewSuggestion


OK_RESPONSE = '{"reviews": [{"lineContent": "+x = 1", "reviewComment": "Magic number"}]}'


class FakeTime:
    """Deterministic clock; sleeping advances it."""

    def __init__(self):
        self.now = 100.0
        self.sleeps: list[float] = []

    def clock(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


def _client(*outcomes) -> MagicMock:
    """A ModelClient whose generate() yields *outcomes* in order."""
    client = MagicMock()
    client.generate.side_effect = list(outcomes)
    return client


def _invoker(client, tiers, model=None, **kwargs):
    fake = FakeTime()
    invoker = ResilientInvoker(
        client, model or next(iter(tiers)), tiers=tiers,
        sleep=fake.sleep, clock=fake.clock, **kwargs,
    )
    return invoker, fake


def _models_called(client) -> list[str]:
    return [c.kwargs["model"] for c in client.generate.call_args_list]


# ── Response parsing ─────────────────────────────────────────


def test_strip_code_fence_variants():
    assert strip_code_fence('```json\n{"a": 1}\n```') == '{"a": 1}'
    assert strip_code_fence('```\n{"a": 1}\n```') == '{"a": 1}'
    assert strip_code_fence('  {"a": 1}  ') == '{"a": 1}'


def test_parse_plain_json():
    assert parse_review_response(OK_RESPONSE) == [
        ReviewSuggestion(line_content="+x = 1", comment="Magic number"),
    ]


def test_parse_fenced_json():
    assert len(parse_review_response(f"```json\n{OK_RESPONSE}\n```")) == 1


def test_parse_invalid_json_returns_empty():
    assert parse_review_response("Sure! Here are my thoughts...") == []
    assert parse_review_response("") == []
    assert parse_review_response(None) == []


def test_parse_wrong_shape_returns_empty():
    assert parse_review_response('{"comments": []}') == []
    assert parse_review_response('{"reviews": "none"}') == []
    assert parse_review_response("[1, 2]") == []


def test_parse_drops_incomplete_entries():
    text = """{"reviews": [
        {"lineContent": "+a", "reviewComment": "kept"},
        {"lineContent": "+b"},
        {"reviewComment": "no line"},
        {"lineContent": 3, "reviewComment": "not a string"},
        {"lineContent": "", "reviewComment": "empty line"},
        "junk"
    ]}"""
    assert parse_review_response(text) == [ReviewSuggestion("+a", "kept")]


# ── Rate gate ────────────────────────────────────────────────


@pytest.mark.parametrize("rpm,expected", [(5, 12.0), (15, 4.0), (60, 1.0), (7, 8.572)])
def test_rate_limit_interval(rpm, expected):
    assert rate_limit_interval(rpm) == pytest.approx(expected)


def test_first_request_is_not_delayed():
    client = _client(OK_RESPONSE)
    invoker, fake = _invoker(client, {"A": 5})

    assert len(invoker.review("p")) == 1
    assert fake.sleeps == []


def test_requests_are_spaced_by_tier_interval():
    client = _client(OK_RESPONSE, OK_RESPONSE, OK_RESPONSE)
    invoker, fake = _invoker(client, {"A": 5})

    invoker.review("p1")
    fake.now += 2.0
    invoker.review("p2")
    fake.now += 20.0
    invoker.review("p3")

    # Only the second request had to wait
    assert fake.sleeps == [pytest.approx(10.0)]


def test_unknown_model_uses_default_rpm():
    invoker, _ = _invoker(_client(), {"A": 30}, model="mystery")

    assert invoker.current_rpm == 5
    assert invoker.rate_limit_delay == 12.0


def test_output_token_limits():
    client = _client(OK_RESPONSE, OK_RESPONSE)
    invoker, _ = _invoker(client, {"A": 60})

    invoker.review("p")
    invoker.review("p", batch=True)

    limits = [c.kwargs["max_output_tokens"] for c in client.generate.call_args_list]
    assert limits == [SINGLE_MAX_OUTPUT_TOKENS, BATCH_MAX_OUTPUT_TOKENS]


# ── Tier degradation ─────────────────────────────────────────


def test_hierarchy_orders_by_ascending_rpm():
    invoker, _ = _invoker(_client(), {"fast": 30, "pro": 5, "flash": 10})
    assert invoker.hierarchy == ["pro", "flash", "fast"]


def test_rate_limit_deranks_and_succeeds():
    """429 on tier A switches to B without a backoff sleep."""
    client = _client(ModelCallError("quota", status=429), OK_RESPONSE)
    invoker, fake = _invoker(client, {"A": 5, "B": 15})

    result = invoker.review("p")

    assert len(result) == 1
    assert _models_called(client) == ["A", "B"]
    assert invoker.current_model == "B"
    assert invoker.rate_limit_delay == 4.0
    # The only wait is B's rate gate
    assert fake.sleeps == [4.0]


def test_only_one_derank_per_request():
    client = _client(
        ModelCallError("quota", status=429),
        ModelCallError("quota", status=429),
        OK_RESPONSE,
    )
    invoker, fake = _invoker(client, {"A": 5, "B": 15, "C": 30})

    result = invoker.review("p")

    assert len(result) == 1
    assert _models_called(client) == ["A", "B", "B"]
    assert invoker.current_model == "B"
    # gate 4s, backoff 1s, gate for the remaining 3s
    assert fake.sleeps == [4.0, 1.0, 3.0]


def test_degradation_is_permanent_across_requests():
    client = _client(ModelCallError("quota", status=429), OK_RESPONSE, OK_RESPONSE)
    invoker, _ = _invoker(client, {"A": 5, "B": 15})

    invoker.review("p1")
    invoker.review("p2")

    assert _models_called(client) == ["A", "B", "B"]


def test_rate_limit_at_lowest_tier_backs_off():
    client = _client(ModelCallError("quota", status=429), OK_RESPONSE)
    invoker, fake = _invoker(client, {"A": 60})

    assert len(invoker.review("p")) == 1
    assert invoker.current_model == "A"
    assert fake.sleeps == [1.0]


def test_derank_at_lowest_tier_returns_false():
    invoker, _ = _invoker(_client(), {"A": 5, "B": 15}, model="B")
    assert invoker.derank() is False
    assert invoker.current_model == "B"


def test_derank_is_compare_and_set():
    invoker, _ = _invoker(_client(), {"A": 5, "B": 15, "C": 30})

    assert invoker.derank(from_model="A") is True
    # A second caller that also saw "A" must not skip past B
    assert invoker.derank(from_model="A") is True
    assert invoker.current_model == "B"


def test_models_never_move_back_up():
    outcomes = []
    for _ in range(4):
        outcomes += [ModelCallError("quota", status=429), OK_RESPONSE]
    client = _client(*outcomes)
    invoker, _ = _invoker(client, {"A": 5, "B": 10, "C": 20})

    for _ in range(4):
        invoker.review("p")

    ranks = [invoker.hierarchy.index(m) for m in _models_called(client)]
    assert ranks == sorted(ranks)
    assert invoker.current_model == "C"


# ── Backoff and failures ─────────────────────────────────────


def test_server_errors_back_off_exponentially_then_give_up():
    client = _client(*[ModelCallError("unavailable", status=503)] * 4)
    invoker, fake = _invoker(client, {"A": 60}, max_retries=3)

    assert invoker.review("p") == []
    assert client.generate.call_count == 4
    assert fake.sleeps == [1.0, 2.0, 4.0]


def test_backoff_is_capped():
    client = _client(*[ModelCallError("busy", status=500)] * 4)
    invoker, fake = _invoker(client, {"A": 60}, max_retries=3,
                             backoff_base=10.0, backoff_cap=15.0)

    assert invoker.review("p") == []
    assert fake.sleeps == [10.0, 15.0, 15.0]


def test_recovers_after_transient_error():
    client = _client(ModelCallError("bad gateway", status=502), OK_RESPONSE)
    invoker, _ = _invoker(client, {"A": 60})

    assert len(invoker.review("p")) == 1


@pytest.mark.parametrize("status", [400, 401, 403, 404, None])
def test_non_retryable_errors_return_empty(status):
    client = _client(ModelCallError("nope", status=status), OK_RESPONSE)
    invoker, fake = _invoker(client, {"A": 5, "B": 15})

    assert invoker.review("p") == []
    assert client.generate.call_count == 1
    assert invoker.current_model == "A"
    assert fake.sleeps == []


def test_empty_model_text_returns_empty():
    invoker, _ = _invoker(_client("   "), {"A": 60})
    assert invoker.review("p") == []


def test_malformed_model_text_returns_empty():
    invoker, _ = _invoker(_client("not json"), {"A": 60})
    assert invoker.review("p") == []


# ── Config wiring ────────────────────────────────────────────


def test_from_config(monkeypatch):
    for key in ("DIFF_REVIEW_MODEL", "LLM_MAX_RETRIES", "LLM_BACKOFF_BASE", "LLM_BACKOFF_CAP"):
        monkeypatch.delenv(key, raising=False)
    cfg = Config({
        "model": "m1",
        "model_tiers": {"m1": 6, "m2": 12},
        "max_retries": 1,
        "backoff_base": 0.5,
    })
    invoker = ResilientInvoker.from_config(_client(), cfg)

    assert invoker.current_model == "m1"
    assert invoker.hierarchy == ["m1", "m2"]
    assert invoker.rate_limit_delay == 10.0
    assert invoker.max_retries == 1
    assert invoker.backoff_base == 0.5


def test_unexpected_client_exception_returns_empty():
    client = _client(RuntimeError("client blew up"), OK_RESPONSE)
    invoker, fake = _invoker(client, {"A": 5, "B": 15})

    assert invoker.review("p") == []
    assert client.generate.call_count == 1
    assert invoker.current_model == "A"
    assert fake.sleeps == []


def test_tiers_without_positive_budget_are_ignored():
    invoker, _ = _invoker(_client(), {"A": 5, "B": 0, "C": -3, "D": 15}, model="A")

    assert invoker.hierarchy == ["A", "D"]
    assert invoker.derank() is True
    assert invoker.current_model == "D"
