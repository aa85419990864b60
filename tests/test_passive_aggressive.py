"""Tests for the Passive-Aggressive classifier and its weight history."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor

import pytest

from spam_classifier.exceptions import (
    DimensionMismatchError,
    EmptyModelError,
    EmptyVectorError,
    StaleStepIndexError,
)
from spam_classifier.models import Label, TrainingSet
from spam_classifier.passive_aggressive import (
    PassiveAggressiveClassifier,
    PassiveAggressiveModel,
    PAVariant,
    compute_tau,
    hinge_loss,
    inner_product,
    norm,
)


def _fresh_classifier(vocabulary=("buy", "cheap"), **kwargs) -> PassiveAggressiveClassifier:
    """Classifier positioned at w_0 = all zeros over ``vocabulary``."""
    clf = PassiveAggressiveClassifier(**kwargs)
    clf.vocabulary = tuple(vocabulary)
    clf.model = PassiveAggressiveModel(history=[{f: 0.0 for f in vocabulary}])
    return clf


# ---------------------------------------------------------------------------
# Vector helpers
# ---------------------------------------------------------------------------

class TestVectorHelpers:
    def test_inner_product(self):
        assert inner_product({"a": 1.0, "b": 2.0}, {"a": 3, "b": 4}) == 11.0

    def test_inner_product_length_mismatch(self):
        with pytest.raises(DimensionMismatchError):
            inner_product({"a": 1.0}, {"a": 1, "b": 2})

    def test_inner_product_key_mismatch(self):
        with pytest.raises(DimensionMismatchError, match="'a'"):
            inner_product({"a": 1.0}, {"b": 1})

    def test_norm(self):
        assert norm({"a": 3, "b": 4}) == 5.0

    def test_norm_of_zero_vector(self):
        assert norm({"a": 0}) == 0.0

    def test_norm_of_empty_vector_raises(self):
        with pytest.raises(EmptyVectorError):
            norm({})

    @pytest.mark.parametrize("margin,expected", [(2.0, 0.0), (1.0, 0.0), (0.0, 1.0), (-1.5, 2.5)])
    def test_hinge_loss(self, margin, expected):
        assert hinge_loss(margin) == expected


class TestComputeTau:
    def test_plain_pa(self):
        assert compute_tau(1.0, 2.0) == 0.25

    def test_pa_i_caps_at_aggressiveness(self):
        assert compute_tau(1.0, 0.5, PAVariant.PA_I, aggressiveness=0.1) == 0.1
        assert compute_tau(1.0, 2.0, PAVariant.PA_I, aggressiveness=10.0) == 0.25

    def test_pa_ii(self):
        assert compute_tau(1.0, 2.0, PAVariant.PA_II, aggressiveness=1.0) == pytest.approx(1 / 4.5)

    def test_zero_norm_treated_as_one(self):
        assert compute_tau(0.5, 0.0) == 0.5

    def test_no_loss_no_step(self):
        assert compute_tau(0.0, 3.0) == 0.0


# ---------------------------------------------------------------------------
# Updates
# ---------------------------------------------------------------------------

class TestPassiveAggressiveUpdate:
    """Tests for the core update rule and rollback."""

    def test_buy_cheap_scenario(self):
        clf = _fresh_classifier()
        result = clf.train_step({"buy": 2, "cheap": 0}, Label.SPAM)

        w1 = clf.model.weights(1)
        assert w1["buy"] > 0
        assert w1["cheap"] == 0
        # loss 1, tau 1/4 -> 0 + 1 * 0.25 * 2
        assert w1["buy"] == pytest.approx(0.5)
        assert result.label is Label.SPAM
        assert result.confidence == 1.0

    def test_update_appends_one_step(self):
        clf = _fresh_classifier()
        clf.update({"buy": 1, "cheap": 1}, Label.SPAM)
        clf.update({"buy": 1, "cheap": 1}, Label.SPAM)
        assert clf.latest_step == 2

    def test_previous_weights_unchanged(self):
        clf = _fresh_classifier()
        clf.update({"buy": 2, "cheap": 1}, Label.SPAM)
        assert clf.model.weights(0) == {"buy": 0.0, "cheap": 0.0}

    def test_correct_confident_prediction_is_passive(self):
        clf = _fresh_classifier()
        clf.model.history[0] = {"buy": 2.0, "cheap": 0.0}
        result = clf.update({"buy": 1, "cheap": 0}, Label.SPAM)
        assert result.confidence == 0.0
        assert clf.model.weights(1) == {"buy": 2.0, "cheap": 0.0}

    def test_misclassified_ham_reports_loss(self):
        clf = _fresh_classifier()
        clf.model.history[0] = {"buy": 1.0, "cheap": 0.0}
        result = clf.update({"buy": 1, "cheap": 0}, Label.NOT_SPAM)
        assert result.label is Label.SPAM
        assert result.confidence == 2.0

    def test_untouched_features_copied(self):
        clf = _fresh_classifier(vocabulary=("buy", "cheap", "now"))
        clf.model.history[0] = {"buy": 0.0, "cheap": 0.0, "now": 0.7}
        clf.update({"buy": 1, "cheap": 0, "now": 0}, Label.SPAM)
        assert clf.model.weights(1)["now"] == 0.7

    def test_rollback_discards_later_steps(self):
        clf = _fresh_classifier()
        for _ in range(3):
            clf.update({"buy": 1, "cheap": 1}, Label.SPAM)
        w1 = dict(clf.model.weights(1))

        clf.update({"buy": 0, "cheap": 2}, Label.SPAM, step_index=1)

        assert clf.latest_step == 2
        assert clf.model.weights(1) == w1
        assert clf.model.weights(2)["buy"] == w1["buy"]

    def test_stale_step_after_prune(self):
        clf = _fresh_classifier()
        for _ in range(3):
            clf.update({"buy": 1, "cheap": 1}, Label.SPAM)
        clf.optimize(history_length=2)

        assert clf.model.offset == 2
        with pytest.raises(StaleStepIndexError):
            clf.update({"buy": 1, "cheap": 0}, Label.SPAM, step_index=1)
        clf.update({"buy": 1, "cheap": 0}, Label.SPAM, step_index=2)
        assert clf.latest_step == 3

    def test_future_step_raises(self):
        clf = _fresh_classifier()
        with pytest.raises(StaleStepIndexError, match="beyond"):
            clf.update({"buy": 1, "cheap": 0}, Label.SPAM, step_index=5)

    def test_misaligned_vector_raises(self):
        clf = _fresh_classifier()
        with pytest.raises(DimensionMismatchError):
            clf.update({"buy": 1}, Label.SPAM)

    def test_failed_step_leaves_history_unchanged(self):
        clf = _fresh_classifier()
        clf.update({"buy": 1, "cheap": 1}, Label.SPAM)
        before = clf.model.snapshot()

        with pytest.raises(DimensionMismatchError):
            clf.update({"buy": 1, "spam": 1}, Label.SPAM, step_index=0)
        with pytest.raises(DimensionMismatchError):
            clf.update({}, Label.SPAM)

        assert clf.model.snapshot() == before
        assert clf.latest_step == 1

    def test_replaying_a_step_is_idempotent(self):
        clf = _fresh_classifier()
        for _ in range(2):
            clf.update({"buy": 1, "cheap": 1}, Label.SPAM)

        clf.update({"buy": 2, "cheap": 1}, Label.NOT_SPAM, step_index=1)
        first = clf.model.weights(2)
        clf.update({"buy": 2, "cheap": 1}, Label.NOT_SPAM, step_index=1)

        assert clf.model.weights(2) == first
        assert clf.latest_step == 2

    def test_update_before_train_raises(self):
        with pytest.raises(EmptyModelError):
            PassiveAggressiveClassifier().update({"a": 1}, Label.SPAM)

    def test_train_step_requires_label(self):
        clf = _fresh_classifier()
        with pytest.raises(ValueError):
            clf.train_step({"buy": 1, "cheap": 0}, None)

    def test_predict_online_self_trains(self):
        clf = _fresh_classifier()
        result = clf.predict_online({"buy": 1, "cheap": 0})
        assert result.label is Label.SPAM
        assert clf.latest_step == 1


# ---------------------------------------------------------------------------
# Training and classification
# ---------------------------------------------------------------------------

class TestPassiveAggressiveClassifier:
    def test_fit_produces_one_step_per_entry(self, training_set):
        clf = PassiveAggressiveClassifier().train(training_set)
        assert clf.latest_step == len(training_set)
        assert clf.model.weights(0) == {f: 0.0 for f in training_set.vocabulary}

    def test_fit_matches_manual_replay(self, small_training_set):
        clf = PassiveAggressiveClassifier().train(small_training_set)
        manual = _fresh_classifier(vocabulary=small_training_set.vocabulary)
        for t, entry in enumerate(small_training_set.entries):
            manual.train_step(entry.features, entry.label, step_index=t)
        assert clf.model.snapshot() == manual.model.snapshot()

    def test_retraining_starts_from_zero(self, small_training_set):
        clf = PassiveAggressiveClassifier().train(small_training_set)
        first = clf.model.snapshot()
        clf.train(small_training_set)
        assert clf.model.snapshot() == first

    def test_classify_advances_history(self, pa_classifier, training_set):
        start = pa_classifier.latest_step
        pa_classifier.classify(training_set.vectors[:3])
        assert pa_classifier.latest_step == start + 3

    def test_classify_is_sequential(self, small_training_set):
        clf_a = PassiveAggressiveClassifier().train(small_training_set)
        clf_b = PassiveAggressiveClassifier().train(small_training_set)
        vectors = small_training_set.vectors

        batch = clf_a.classify(vectors)
        one_by_one = [clf_b.classify([vec])[0] for vec in vectors]
        assert batch == one_by_one

    def test_fallback_relabels_zero_margin(self):
        clf = _fresh_classifier()
        [result] = clf.classify([{"buy": 0, "cheap": 0}], use_default_fallback=True)
        assert result.confidence == 1.0
        assert result.label is Label.NOT_SPAM

        [result] = clf.classify([{"buy": 0, "cheap": 0}], use_default_fallback=False)
        assert result.label is Label.SPAM

    @pytest.mark.parametrize("weight", [0.5, 2.0])
    def test_fallback_keeps_results_with_margin(self, weight):
        clf = _fresh_classifier(default_class="not_spam")
        clf.model.history[0] = {"buy": weight, "cheap": 0.0}
        [result] = clf.classify([{"buy": 1, "cheap": 0}], use_default_fallback=True)
        assert result.confidence < 1.0
        assert result.label is Label.SPAM

    def test_concurrent_predictions_are_serialized(self, pa_classifier, training_set):
        start = pa_classifier.latest_step
        vec = training_set.vectors[0]
        with ThreadPoolExecutor(max_workers=8) as executor:
            list(executor.map(lambda _: pa_classifier.predict_online(vec), range(40)))
        assert pa_classifier.latest_step == start + 40

    def test_variant_and_aggressiveness_params(self):
        clf = PassiveAggressiveClassifier(variant="pa2", aggressiveness=0.5)
        assert clf.variant is PAVariant.PA_II
        params = clf.get_params()
        assert params["variant"] == "pa2"
        assert params["aggressiveness"] == 0.5

    def test_spawn_keeps_variant(self):
        clone = PassiveAggressiveClassifier(variant=PAVariant.PA_I, aggressiveness=3.0).spawn()
        assert clone.variant is PAVariant.PA_I
        assert clone.aggressiveness == 3.0
        assert not clone.is_trained

    @pytest.mark.parametrize("value", [0, -1.0])
    def test_non_positive_aggressiveness_raises(self, value):
        with pytest.raises(ValueError):
            PassiveAggressiveClassifier(aggressiveness=value)

    def test_unknown_variant_raises(self):
        with pytest.raises(ValueError):
            PassiveAggressiveClassifier(variant="pa3")

    def test_optimize_prunes_history_and_entries(self, pa_classifier):
        latest = pa_classifier.latest_step
        pa_classifier.optimize(history_length=3)
        assert pa_classifier.training_set is None
        assert pa_classifier.model.offset == latest - 2
        assert list(pa_classifier.model_details()["w"]) == [latest - 2, latest - 1, latest]

    def test_optimize_rejects_zero_history(self, pa_classifier):
        with pytest.raises(ValueError):
            pa_classifier.optimize(history_length=0)

    def test_classify_after_optimize_continues(self, pa_classifier, training_set):
        pa_classifier.optimize(history_length=1)
        latest = pa_classifier.latest_step
        pa_classifier.classify(training_set.vectors[:1])
        assert pa_classifier.latest_step == latest + 1

    def test_weights_grow_on_spam_features(self):
        ts = TrainingSet.from_dict({
            "vocabulary": ["buy", "cheap"],
            "entries": [{"label": "spam", "features": {"buy": 2, "cheap": 0}}],
        })
        clf = PassiveAggressiveClassifier().train(ts)
        assert clf.model.weights(1) == {"buy": 0.5, "cheap": 0.0}
