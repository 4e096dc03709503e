from grasshift.schemas.user import UserConfig
from grasshift.schemas.cli import CLIConfig
from grasshift.schemas.param import ParamConfig
from grasshift.schemas.resolve import resolve_config


def test_cli_overrides_do_not_mutate_user():
    user = UserConfig.model_validate({"RUN_NAME": "from_user", "N_WORKERS": 2, "BASE_DIR": "/tmp"})

    cli = CLIConfig.model_validate({"n_workers": 6})

    internal = resolve_config(ParamConfig(), user, cli)

    # CLI should take precedence
    assert internal.tiling.n_workers == 6

    # But the user model itself should remain unchanged
    assert user.n_workers == 2


def test_cli_minimal_overrides_run_name():
    """CLI run_name override should work correctly."""
    user = UserConfig(base_dir="/tmp", run_name="from_user")
    cli = CLIConfig(run_name="from_cli")

    config = resolve_config(ParamConfig(), user, cli)

    assert config.global_.run_name == "from_cli"  # CLI wins
    assert config.base_dir == "/tmp"  # User value preserved


def test_cli_run_name_keeps_user_var_names():
    """CLI global override merges with, not replaces, the user's global section."""
    user = UserConfig(bands=["afg", "pfg", "bgr"], annual_grass_band="afg")
    cli = CLIConfig(run_name="from_cli")

    config = resolve_config(ParamConfig(), user, cli)

    assert config.global_.run_name == "from_cli"
    assert config.global_.var_names.bands == ["afg", "pfg", "bgr"]


def test_cli_precedence_no_user_config():
    """CLI should work even without UserConfig."""
    cli = CLIConfig(n_workers=3, log_level="WARNING")

    config = resolve_config(ParamConfig(), None, cli)

    assert config.tiling.n_workers == 3
    assert config.logging.level == "WARNING"


def test_cli_only_overrides_specified_fields():
    """CLI should only override fields that are explicitly set."""
    user = UserConfig(
        base_dir="/tmp",
        n_workers=2,
        tile_shape=(256, 256),
        alpha=0.4,
    )

    # CLI only sets n_workers
    cli = CLIConfig(n_workers=8)

    config = resolve_config(ParamConfig(), user, cli)

    assert config.tiling.n_workers == 8  # CLI override
    assert config.tiling.tile_shape == (256, 256)  # User value preserved
    assert config.smoothing.alpha == 0.4  # User value preserved
