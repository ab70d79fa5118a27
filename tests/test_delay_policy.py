import pytest

from vein.config.delay_policy import (
    DelayPolicy,
    DelayPolicyConfig,
    GemDelayOverride,
    PinnedVersion,
    glob_match,
)


def test_default_config():
    config = DelayPolicyConfig()
    assert config.enabled is False
    assert config.default_delay_days == 3
    assert config.skip_weekends is True
    assert config.business_hours_only is True
    assert config.release_hour_utc == 9


def test_delay_for_gem_default():
    assert DelayPolicyConfig().delay_for_gem("rails") == 3


def test_delay_for_gem_override():
    config = DelayPolicyConfig(gems=[GemDelayOverride(name="rails", delay_days=7)])
    assert config.delay_for_gem("rails") == 7
    assert config.delay_for_gem("rack") == 3


def test_delay_for_gem_pattern():
    config = DelayPolicyConfig(
        gems=[GemDelayOverride(name="*-internal", delay_days=0, pattern=True)]
    )
    assert config.delay_for_gem("my-gem-internal") == 0
    assert config.delay_for_gem("rails") == 3


def test_non_pattern_override_is_literal():
    config = DelayPolicyConfig(gems=[GemDelayOverride(name="rails-*", delay_days=9)])
    assert config.delay_for_gem("rails-api") == 3
    assert config.delay_for_gem("rails-*") == 9


def test_first_matching_override_wins():
    config = DelayPolicyConfig(
        gems=[
            GemDelayOverride(name="rails-*", delay_days=1, pattern=True),
            GemDelayOverride(name="rails-api", delay_days=5),
        ]
    )
    assert config.delay_for_gem("rails-api") == 1


def test_is_pinned():
    config = DelayPolicyConfig(
        pinned=[PinnedVersion(name="nokogiri", version="1.16.0", reason="CVE-2024-XXXXX")]
    )
    assert config.is_pinned("nokogiri", "1.16.0")
    assert not config.is_pinned("nokogiri", "1.15.0")
    assert not config.is_pinned("rails", "7.0.0")


def test_pin_reason():
    config = DelayPolicyConfig(
        pinned=[PinnedVersion(name="nokogiri", version="1.16.0", reason="CVE-2024-XXXXX")]
    )
    assert config.pin_reason("nokogiri", "1.16.0") == "CVE-2024-XXXXX"
    assert config.pin_reason("nokogiri", "1.15.0") is None


@pytest.mark.parametrize(
    ("pattern", "name", "expected"),
    [
        ("*-internal", "my-gem-internal", True),
        ("*-internal", "internal-gem", False),
        ("rails-*", "rails-api", True),
        ("rails-*", "my-rails", False),
        ("my-*-gem", "my-awesome-gem", True),
        ("my-*-gem", "your-awesome-gem", False),
        ("rails", "rails", True),
        ("rails", "rack", False),
        ("*", "anything", True),
    ],
)
def test_glob_match(pattern, name, expected):
    assert glob_match(pattern, name) is expected


def test_toml_parsing():
    text = """
        enabled = true
        default_delay_days = 5
        skip_weekends = false
        business_hours_only = true
        release_hour_utc = 14

        [[gems]]
        name = "rails"
        delay_days = 7

        [[gems]]
        name = "*-internal"
        delay_days = 0
        pattern = true

        [[pinned]]
        name = "nokogiri"
        version = "1.16.0"
        reason = "CVE-2024-XXXXX"
    """
    config = DelayPolicyConfig.from_toml(text)
    assert config.enabled is True
    assert config.default_delay_days == 5
    assert config.skip_weekends is False
    assert config.release_hour_utc == 14
    assert len(config.gems) == 2
    assert len(config.pinned) == 1
    assert config.gems[1] == GemDelayOverride(name="*-internal", delay_days=0, pattern=True)
    assert config.delay_for_gem("rails") == 7
    assert config.delay_for_gem("x-internal") == 0


def test_from_dict_empty_gives_defaults():
    assert DelayPolicyConfig.from_dict({}) == DelayPolicyConfig()


def test_override_missing_field():
    with pytest.raises(ValueError, match="delay_days"):
        DelayPolicyConfig.from_dict({"gems": [{"name": "rails"}]})


def test_pinned_missing_reason():
    with pytest.raises(ValueError, match="reason"):
        DelayPolicyConfig.from_dict({"pinned": [{"name": "rack", "version": "1.0"}]})


def test_invalid_release_hour_type():
    with pytest.raises(ValueError):
        DelayPolicyConfig.from_dict({"release_hour_utc": "nine"})


def test_to_adapter_policy():
    config = DelayPolicyConfig(default_delay_days=4, skip_weekends=False, release_hour_utc=12)
    assert config.to_adapter_policy() == DelayPolicy(
        default_delay_days=4,
        skip_weekends=False,
        business_hours_only=True,
        release_hour_utc=12,
    )