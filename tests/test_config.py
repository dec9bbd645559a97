from pathlib import Path

from tweaqengine.config import EngineConfig, load_engine_config, save_engine_config


def test_engine_config_roundtrip(tmp_path: Path) -> None:
    config_path = tmp_path / "config.json"
    original = EngineConfig(
        confidence_floor=0.6,
        alternatives_cap=3,
        oracle_timeout_sec=5.0,
        publish_timeout_sec=30.0,
        singular_top_k=1,
        plural_top_k=4,
        store_dir=str(tmp_path / "store"),
    )
    ok, message = save_engine_config(original, config_path)
    assert ok is True
    assert message is None
    assert load_engine_config(config_path) == original
    assert original.resolved_store_dir() == tmp_path / "store"


def test_engine_config_load_fallbacks(tmp_path: Path) -> None:
    config_path = tmp_path / "config.json"
    assert load_engine_config(config_path) == EngineConfig()
    config_path.write_text("{invalid", encoding="utf-8")
    assert load_engine_config(config_path) == EngineConfig()
    config_path.write_text("[1, 2]", encoding="utf-8")
    assert load_engine_config(config_path) == EngineConfig()


def test_invalid_values_fall_back_per_key(tmp_path: Path) -> None:
    config_path = tmp_path / "config.json"
    config_path.write_text(
        '{"confidence_floor": 1.5, "alternatives_cap": "seven", "plural_top_k": 0, "oracle_timeout_sec": 3}',
        encoding="utf-8",
    )

    loaded = load_engine_config(config_path)

    assert loaded.confidence_floor == 0.5
    assert loaded.alternatives_cap == 5
    assert loaded.plural_top_k == 2
    assert loaded.oracle_timeout_sec == 3.0
