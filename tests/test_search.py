"""
Tests for the quality search engine.
"""
import pytest

from size_reducer.errors import CollaboratorFailure, ConfigurationError
from size_reducer.search import (
    CandidateListSearch,
    ProgressEvent,
    StepDecaySearch,
    TargetBudget,
    require_target,
    run_search,
    step_decay_qualities,
    validate_candidates,
)


def sizes(mapping):
    """attempt() returning len = mapping[quality]."""
    calls = []

    def attempt(quality):
        calls.append(quality)
        return b"x" * mapping[quality]
    return attempt, calls


class TestStepDecayQualities:
    """Tests for the step-decay quality sequence."""

    def test_default_sequence(self):
        """Sequence runs 0.95 down to 0.05 in 0.05 steps."""
        qualities = step_decay_qualities()
        expected = [round(0.95 - 0.05 * i, 2) for i in range(19)]
        assert qualities == pytest.approx(expected)
        assert qualities[-1] == 0.05

    def test_strictly_descending_and_never_below_floor(self):
        qualities = step_decay_qualities(0.9, 0.2, 0.15)
        assert qualities == pytest.approx([0.9, 0.7, 0.5, 0.3, 0.15])
        assert all(a > b for a, b in zip(qualities, qualities[1:]))

    def test_start_equal_to_floor(self):
        assert step_decay_qualities(0.5, 0.05, 0.5) == [0.5]

    @pytest.mark.parametrize("start,step,floor", [
        (0.95, 0.0, 0.05),
        (0.95, 0.05, 0.0),
        (1.5, 0.05, 0.05),
        (0.05, 0.05, 0.5),
    ])
    def test_invalid_parameters(self, start, step, floor):
        with pytest.raises(ConfigurationError):
            step_decay_qualities(start, step, floor)


class TestCandidateValidation:
    """Tests for candidate list validation."""

    def test_valid_list(self):
        assert validate_candidates([0.9, 0.7, 0.5, 0.3]) == (0.9, 0.7, 0.5, 0.3)

    @pytest.mark.parametrize("candidates", [
        [],
        None,
        [0.5, 0.7],
        [0.7, 0.7],
        [1.2, 0.5],
        [0.5, 0.0],
    ])
    def test_invalid_lists(self, candidates):
        with pytest.raises(ConfigurationError):
            validate_candidates(candidates)


class TestTargetBudget:
    """Tests for budget validation."""

    def test_from_kb(self):
        assert TargetBudget.from_kb(10).max_size_bytes == 10240

    def test_below_minimum(self):
        with pytest.raises(ConfigurationError):
            TargetBudget.from_kb(5).validate(10 * 1024)

    def test_missing_target(self):
        with pytest.raises(ConfigurationError):
            require_target(None, 10 * 1024)

    def test_at_minimum_is_valid(self):
        assert require_target(TargetBudget(10240), 10240).max_size_bytes == 10240

    @pytest.mark.parametrize("kb", [float("nan"), float("inf"), float("-inf")])
    def test_non_finite_kb(self, kb):
        with pytest.raises(ConfigurationError):
            TargetBudget.from_kb(kb)

    @pytest.mark.parametrize("size", [12345.5, float("nan"), True, None, "20000"])
    def test_non_integer_bytes(self, size):
        with pytest.raises(ConfigurationError):
            TargetBudget(size).validate()


class TestRunSearch:
    """Tests for the shared stop/fallback rules."""

    def test_first_success_wins(self):
        attempt, calls = sizes({0.9: 500, 0.7: 300, 0.5: 100, 0.3: 50})
        outcome = run_search([0.9, 0.7, 0.5, 0.3], attempt, max_size_bytes=300)

        assert outcome.target_met
        assert outcome.final_quality == 0.7
        assert outcome.achieved_size_bytes == 300
        assert calls == [0.9, 0.7]
        assert outcome.attempts == [(0.9, 500), (0.7, 300)]

    def test_exhaustion_returns_last_attempt(self):
        attempt, calls = sizes({0.9: 500, 0.7: 400, 0.5: 450})
        outcome = run_search([0.9, 0.7, 0.5], attempt, max_size_bytes=100)

        assert not outcome.target_met
        assert outcome.final_quality == 0.5
        # Last tried, not smallest seen
        assert outcome.achieved_size_bytes == 450
        assert len(outcome.final_bytes) == 450
        assert calls == [0.9, 0.7, 0.5]

    def test_no_budget_uses_first_quality_only(self):
        attempt, calls = sizes({0.9: 500, 0.7: 300})
        outcome = run_search([0.9, 0.7], attempt, max_size_bytes=None)

        assert outcome.target_met
        assert outcome.final_quality == 0.9
        assert calls == [0.9]

    def test_progress_reported_for_every_attempt(self):
        events = []
        attempt, _ = sizes({0.9: 500, 0.7: 300, 0.5: 100})
        run_search([0.9, 0.7, 0.5], attempt, 100, progress=events.append, phase="candidate")

        assert events == [
            ProgressEvent(phase="candidate", quality=0.9, size_bytes=500),
            ProgressEvent(phase="candidate", quality=0.7, size_bytes=300),
            ProgressEvent(phase="candidate", quality=0.5, size_bytes=100),
        ]

    def test_failing_progress_sink_does_not_abort(self):
        def broken(event):
            raise RuntimeError("display gone")

        attempt, calls = sizes({0.9: 500, 0.7: 300})
        outcome = run_search([0.9, 0.7], attempt, 300, progress=broken)

        assert outcome.target_met
        assert calls == [0.9, 0.7]

    def test_attempt_failure_is_collaborator_failure(self):
        def attempt(quality):
            raise OSError("disk on fire")

        with pytest.raises(CollaboratorFailure) as excinfo:
            run_search([0.9, 0.7], attempt, 100, stage="encode")

        assert excinfo.value.stage == "encode"
        assert isinstance(excinfo.value.__cause__, OSError)

    def test_configuration_error_from_attempt_propagates_unwrapped(self):
        def attempt(quality):
            raise ConfigurationError("bad input")

        with pytest.raises(ConfigurationError):
            run_search([0.9], attempt, 100)

    def test_empty_qualities(self):
        with pytest.raises(ConfigurationError):
            run_search([], lambda q: b"", 100)


class TestPolicies:
    """Tests for the two concrete strategies."""

    def test_step_decay_stops_at_floor(self):
        tried = []

        def attempt(quality):
            tried.append(quality)
            return b"x" * 1000

        outcome = StepDecaySearch().search(attempt, max_size_bytes=10)

        assert not outcome.target_met
        assert outcome.final_quality == 0.05
        assert len(tried) == 19

    def test_candidate_list_phase(self):
        events = []
        policy = CandidateListSearch([0.9, 0.3])
        policy.search(lambda q: b"x", 100, progress=events.append)
        assert events[0].phase == "candidate"

    def test_candidate_list_rejects_ascending(self):
        with pytest.raises(ConfigurationError):
            CandidateListSearch([0.3, 0.9])
