"""
Tests for the config store, requirement catalog and store lock.
"""

from pathlib import Path

import pytest

from agentdeploy.core.config.lock import lock_path_for, store_lock
from agentdeploy.core.config.requirements import (
    SELECTOR_KEY,
    known_kinds,
    placeholder_map,
    required_for,
    required_for_snapshot,
)
from agentdeploy.core.config.store import ConfigStore
from agentdeploy.core.errors import StoreInitError, StoreLockedError
from agentdeploy.core.models.config import RequiredVariable

# ── Reads ────────────────────────────────────────────────────────────


class TestGet:
    def test_missing_file_returns_default(self, env_path: Path):
        store = ConfigStore(env_path)
        assert store.get("TARGET_SERVER_IP") == ""
        assert store.get("TARGET_SERVER_IP", "fallback") == "fallback"

    def test_quotes_and_whitespace_stripped(self, env_path: Path):
        env_path.write_text('A=  "one"  \nB=\'two\'\nC = three  \n', encoding="utf-8")
        store = ConfigStore(env_path)
        assert store.get("A") == "one"
        assert store.get("B") == "two"
        assert store.get("C") == "three"

    def test_export_prefix_accepted(self, env_path: Path):
        env_path.write_text("export DEPLOYMENT_MODE=staging\n", encoding="utf-8")
        assert ConfigStore(env_path).get("DEPLOYMENT_MODE") == "staging"

    def test_commented_lines_never_match(self, env_path: Path):
        env_path.write_text('# TARGET_SERVER_IP="10.0.0.1"\n', encoding="utf-8")
        assert ConfigStore(env_path).get("TARGET_SERVER_IP") == ""

    def test_empty_value_returns_default(self, env_path: Path):
        env_path.write_text('GITHUB_PAT=""\n', encoding="utf-8")
        assert ConfigStore(env_path).get("GITHUB_PAT", "none") == "none"

    def test_first_occurrence_wins(self, env_path: Path):
        env_path.write_text('A="first"\nA="second"\n', encoding="utf-8")
        assert ConfigStore(env_path).get("A") == "first"

    def test_escaped_quotes(self, env_path: Path):
        env_path.write_text('A="say \\"hi\\""\n', encoding="utf-8")
        assert ConfigStore(env_path).get("A") == 'say "hi"'


# ── Writes ───────────────────────────────────────────────────────────


class TestSet:
    def test_set_twice_leaves_one_line(self, env_path: Path):
        store = ConfigStore(env_path)
        store.set("TARGET_SERVER_IP", "10.0.0.1")
        store.set("TARGET_SERVER_IP", "10.0.0.2")

        lines = env_path.read_text(encoding="utf-8").splitlines()
        matching = [line for line in lines if line.startswith("TARGET_SERVER_IP=")]
        assert matching == ['TARGET_SERVER_IP="10.0.0.2"']
        assert store.get("TARGET_SERVER_IP") == "10.0.0.2"

    def test_replaces_in_place(self, env_path: Path):
        env_path.write_text('# header\nA="1"\nB="2"\n', encoding="utf-8")
        ConfigStore(env_path).set("A", "changed")
        assert env_path.read_text(encoding="utf-8") == '# header\nA="changed"\nB="2"\n'

    def test_duplicates_collapsed(self, env_path: Path):
        env_path.write_text('A="1"\nB="x"\nA="2"\n', encoding="utf-8")
        ConfigStore(env_path).set("A", "3")
        assert env_path.read_text(encoding="utf-8") == 'A="3"\nB="x"\n'

    def test_commented_key_is_appended(self, env_path: Path):
        env_path.write_text('# A="old"\n', encoding="utf-8")
        ConfigStore(env_path).set("A", "new")
        assert env_path.read_text(encoding="utf-8") == '# A="old"\nA="new"\n'

    def test_value_with_quotes_round_trips(self, env_path: Path):
        store = ConfigStore(env_path)
        store.set("A", 'he said "hi"')
        assert store.get("A") == 'he said "hi"'

    def test_value_keeps_inner_whitespace(self, env_path: Path):
        store = ConfigStore(env_path)
        store.set("A", " a ")
        assert env_path.read_text(encoding="utf-8") == 'A=" a "\n'
        assert store.get("A") == " a "
        assert ConfigStore(env_path).snapshot().get("A") == " a "

    def test_rejects_invalid_key(self, env_path: Path):
        with pytest.raises(ValueError):
            ConfigStore(env_path).set("BAD KEY", "x")

    def test_rejects_multiline_value(self, env_path: Path):
        with pytest.raises(ValueError):
            ConfigStore(env_path).set("A", "one\ntwo")

    def test_no_temp_files_left(self, env_path: Path):
        store = ConfigStore(env_path)
        store.update({"A": "1", "B": "2"})
        assert sorted(p.name for p in env_path.parent.iterdir()) == [".env"]


# ── Placeholders and validation ─────────────────────────────────────


class TestValidateRequired:
    def test_placeholder_reported_missing(self, env_path: Path):
        env_path.write_text('TARGET_SERVER_IP="YOUR_SERVER_IP_HERE"\n', encoding="utf-8")
        store = ConfigStore(env_path)
        req = RequiredVariable(key="TARGET_SERVER_IP", placeholder="YOUR_SERVER_IP_HERE")

        assert store.get("TARGET_SERVER_IP") == "YOUR_SERVER_IP_HERE"
        ok, missing = store.validate_required([req])
        assert not ok
        assert missing == ["TARGET_SERVER_IP"]

    def test_registered_placeholder_applies(self, env_path: Path):
        env_path.write_text('CUSTOM="FILL_ME"\n', encoding="utf-8")
        store = ConfigStore(env_path, placeholders={})
        store.register_placeholder("CUSTOM", "FILL_ME")

        ok, missing = store.validate_required([RequiredVariable(key="CUSTOM")])
        assert not ok
        assert missing == ["CUSTOM"]
        assert store.is_placeholder("CUSTOM")

    def test_empty_and_absent_both_reported(self, env_path: Path):
        env_path.write_text('A=""\n', encoding="utf-8")
        store = ConfigStore(env_path)
        ok, missing = store.validate_required(
            [RequiredVariable(key="A"), RequiredVariable(key="B")]
        )
        assert not ok
        assert missing == ["A", "B"]

    def test_real_value_passes(self, env_path: Path):
        env_path.write_text('TARGET_SERVER_IP="192.0.2.1"\n', encoding="utf-8")
        ok, missing = ConfigStore(env_path).validate_required(
            [RequiredVariable(key="TARGET_SERVER_IP", placeholder="YOUR_SERVER_IP_HERE")]
        )
        assert ok
        assert missing == []

    def test_entries_flag_placeholders(self, env_path: Path):
        env_path.write_text(
            'TARGET_SERVER_IP="YOUR_SERVER_IP_HERE"\nDEPLOYMENT_MODE="dev"\n',
            encoding="utf-8",
        )
        entries = {e.key: e for e in ConfigStore(env_path).entries()}
        assert entries["TARGET_SERVER_IP"].is_placeholder
        assert not entries["TARGET_SERVER_IP"].is_set
        assert entries["DEPLOYMENT_MODE"].is_set

    def test_snapshot_is_immutable_copy(self, complete_store: ConfigStore):
        snap = complete_store.snapshot()
        complete_store.set("TARGET_SERVER_IP", "198.51.100.7")
        assert snap.get("TARGET_SERVER_IP") == "192.0.2.10"
        assert complete_store.snapshot().get("TARGET_SERVER_IP") == "198.51.100.7"


# ── Initialization ───────────────────────────────────────────────────


class TestEnsure:
    def test_creates_from_packaged_template(self, env_path: Path):
        store = ConfigStore(env_path)
        assert store.ensure() is True
        assert env_path.is_file()
        assert store.get("TARGET_SERVER_IP") == "YOUR_SERVER_IP_HERE"
        assert store.is_placeholder("TARGET_SERVER_IP")

    def test_existing_store_untouched(self, complete_store: ConfigStore):
        before = complete_store.path.read_text(encoding="utf-8")
        assert complete_store.ensure() is False
        assert complete_store.path.read_text(encoding="utf-8") == before

    def test_local_template_preferred(self, env_path: Path):
        (env_path.parent / ".env.template").write_text('LOCAL="yes"\n', encoding="utf-8")
        store = ConfigStore(env_path)
        store.ensure()
        assert store.get("LOCAL") == "yes"

    def test_missing_template_raises(self, env_path: Path, tmp_path: Path):
        store = ConfigStore(env_path, template=tmp_path / "nope.template")
        with pytest.raises(StoreInitError):
            store.ensure()


# ── Requirement catalog ──────────────────────────────────────────────


class TestRequirements:
    def test_known_kinds(self):
        assert set(known_kinds()) == {"home-server", "gcloud"}

    def test_unset_kind_gets_selector_and_base(self):
        keys = [r.key for r in required_for(None)]
        assert keys[0] == SELECTOR_KEY
        assert "GITHUB_PAT" in keys
        assert "TARGET_SERVER_IP" not in keys
        assert "GOOGLE_CLOUD_PROJECT" not in keys

    def test_home_server_needs_address(self):
        keys = [r.key for r in required_for("home-server")]
        assert "TARGET_SERVER_IP" in keys

    def test_gcloud_needs_project_and_zone(self):
        keys = [r.key for r in required_for("gcloud")]
        assert "GOOGLE_CLOUD_PROJECT" in keys
        assert "GOOGLE_CLOUD_ZONE" in keys
        assert "TARGET_SERVER_IP" not in keys

    def test_selector_has_choices(self):
        selector = required_for(None)[0]
        assert selector.choices == ["home-server", "gcloud"]
        assert selector.placeholder == "CHOOSE_INFRASTRUCTURE_TYPE"

    def test_placeholder_map(self):
        sentinels = placeholder_map()
        assert sentinels["TARGET_SERVER_IP"] == "YOUR_SERVER_IP_HERE"
        assert sentinels["GITHUB_PAT"] == "YOUR_GITHUB_PERSONAL_ACCESS_TOKEN_HERE"

    def test_required_for_snapshot_follows_selector(self, complete_store: ConfigStore):
        keys = [r.key for r in required_for_snapshot(complete_store.snapshot())]
        assert "TARGET_SERVER_IP" in keys

    def test_template_placeholder_selector_counts_as_unset(self, env_path: Path):
        store = ConfigStore(env_path)
        store.ensure()
        keys = [r.key for r in required_for_snapshot(store.snapshot())]
        assert "TARGET_SERVER_IP" not in keys


# ── Store lock ───────────────────────────────────────────────────────


class TestStoreLock:
    def test_lock_path(self, env_path: Path):
        assert lock_path_for(env_path).name == ".env.lock"

    def test_second_holder_rejected(self, env_path: Path):
        with store_lock(env_path):
            with pytest.raises(StoreLockedError):
                with store_lock(env_path):
                    pass

    def test_released_after_block(self, env_path: Path):
        with store_lock(env_path):
            pass
        with store_lock(env_path) as path:
            assert path.is_file()
