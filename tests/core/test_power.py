"""Unit tests for sample size recommendations and power."""

import pytest

from ab_winner.core import power


class TestRecommendSampleSize:
    """Tests for the rule-of-thumb sample size recommendation."""

    def test_formula(self):
        """n = ceil(16·p(1-p)/(0.2·p)²) using the larger rate as baseline."""
        rec = power.recommend_sample_size(0.05, 0.08)
        # 16 * 0.92 / (0.04 * 0.08) = 4600; float error may push ceil to 4601
        assert rec.recommended_per_variation in (4600, 4601)
        assert rec.baseline_rate == 8.0

    def test_total_is_double(self):
        """Total covers both variations."""
        rec = power.recommend_sample_size(0.10, 0.12)
        assert rec.total_recommended == 2 * rec.recommended_per_variation

    def test_fallback_baseline(self):
        """No conversions on either side assumes a 5% baseline."""
        rec = power.recommend_sample_size(0.0, 0.0)
        assert rec.baseline_rate == 5.0
        assert 7600 <= rec.recommended_per_variation <= 7601

    def test_higher_baseline_needs_fewer(self):
        """Higher baselines need fewer impressions for the same relative lift."""
        low = power.recommend_sample_size(0.02, 0.02)
        high = power.recommend_sample_size(0.30, 0.30)
        assert high.recommended_per_variation < low.recommended_per_variation

    def test_larger_mde_needs_fewer(self):
        """Larger detectable effects need fewer impressions."""
        small = power.recommend_sample_size(0.05, 0.05, mde=0.10)
        large = power.recommend_sample_size(0.05, 0.05, mde=0.30)
        assert large.recommended_per_variation < small.recommended_per_variation

    def test_full_conversion_needs_nothing(self):
        """A 100% baseline has no variance left to detect."""
        rec = power.recommend_sample_size(1.0, 0.5)
        assert rec.recommended_per_variation == 0

    def test_additional_needed(self):
        """Additional impressions shrink as data accumulates and never go negative."""
        early = power.recommend_sample_size(0.05, 0.06, current_per_variation=100)
        done = power.recommend_sample_size(0.05, 0.06, current_per_variation=10 ** 6)

        assert early.additional_needed == early.recommended_per_variation - 100
        assert done.additional_needed == 0

    def test_invalid_mde(self):
        """Non-positive MDE is a programming error."""
        with pytest.raises(ValueError, match="MDE must be positive"):
            power.recommend_sample_size(0.05, 0.06, mde=0)


class TestCohensH:
    """Tests for Cohen's h effect size."""

    def test_positive_effect(self):
        """Higher treatment rate gives positive h."""
        assert power.cohens_h(0.10, 0.12) > 0

    def test_no_effect(self):
        """Equal rates give h = 0."""
        assert abs(power.cohens_h(0.10, 0.10)) < 1e-12

    def test_invalid_proportions(self):
        """Proportions outside [0, 1] are rejected."""
        with pytest.raises(ValueError, match="Proportions must be between 0 and 1"):
            power.cohens_h(-0.1, 0.5)


class TestPowerBinary:
    """Tests for achieved power."""

    def test_power_grows_with_sample(self):
        """More impressions means more power."""
        small = power.power_binary(0.05, 0.08, n=200)
        large = power.power_binary(0.05, 0.08, n=2000)
        assert 0 < small < large < 1

    def test_clear_winner_is_well_powered(self):
        """5% vs 8% with 1000 per arm should have power above 70%."""
        assert power.power_binary(0.05, 0.08, n=1000) > 0.70

    def test_equal_rates(self):
        """With no effect, power is just the false-positive rate."""
        assert power.power_binary(0.05, 0.05, n=1000) == pytest.approx(0.05)

    def test_invalid_inputs(self):
        """Bad sample size or alpha raise ValueError."""
        with pytest.raises(ValueError, match="Sample size must be positive"):
            power.power_binary(0.05, 0.06, n=0)
        with pytest.raises(ValueError, match="alpha must be between 0 and 1"):
            power.power_binary(0.05, 0.06, n=100, alpha=1.5)
