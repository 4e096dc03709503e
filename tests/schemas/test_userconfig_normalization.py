import pytest

from grasshift.schemas.user import UserConfig


def test_uppercase_keys_are_handled():
    raw = {
        "RUN_NAME": "great_basin",
        "ALPHA": 1,
        "N_CLUSTERS": 6,
        "PERIODS": [[1990, 1999], [2000, 2009]],
        "BASE_DIR": "/tmp/grasshift_out",
    }

    user = UserConfig.model_validate(raw)

    assert user.run_name == "great_basin"
    assert isinstance(user.alpha, float) and user.alpha == 1.0
    assert user.n_clusters == 6
    assert user.periods == [(1990, 1999), (2000, 2009)]
    assert user.base_dir == "/tmp/grasshift_out"


def test_unknown_keys_are_ignored():
    raw = {"RUN_NAME": "r1", "UNKNOWN_LEGACY": 12345}
    user = UserConfig.model_validate(raw)

    assert user.run_name == "r1"
    # Unknown key should not become an attribute nor raise
    assert not hasattr(user, "UNKNOWN_LEGACY")


def test_target_label_implies_fixed_selection():
    overrides = UserConfig(TARGET_LABEL=2).to_internal_overrides()

    assert overrides["classifier"] == {"target_label": 2, "target_selection": "fixed"}


def test_selection_rule_is_lowercased():
    user = UserConfig(classifier={"target_selection": "  MAX_BAND "})
    assert user.classifier.target_selection == "max_band"
