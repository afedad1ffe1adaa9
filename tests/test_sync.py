"""Tests for merge rules and the sync engine."""

import json
from unittest.mock import MagicMock

import pytest

from switchboard.config import load_sync_config, save_sync_config
from switchboard.errors import DecryptionError, NotFoundError, ParseError, TransportError, ValidationError
from switchboard.models import PresetTemplate, ToolStorage
from switchboard.store import ProviderStore, load_storage, save_storage
from switchboard.sync import SyncEngine, merge_presets, merge_providers
from switchboard.tools import Tool
from switchboard.writers import create_writer


class TestMergeProviders:
    def test_same_id_newer_remote_wins(self, make_provider):
        local = [make_provider(id="a", base_url="https://x", api_key="k", updated_at=100)]
        remote = [make_provider(id="a", base_url="https://x2", api_key="k", updated_at=200)]

        result = merge_providers(local, remote)

        assert [p.base_url for p in result.merged] == ["https://x2"]
        assert result.has_changes is True

    def test_same_id_tie_keeps_local(self, make_provider):
        local = [make_provider(id="a", name="local", updated_at=100)]
        remote = [make_provider(id="a", name="remote", updated_at=100)]

        result = merge_providers(local, remote)

        assert [p.name for p in result.merged] == ["local"]
        assert result.has_changes is False

    def test_same_credentials_dedup(self, make_provider):
        local = [make_provider(id="a", name="a", base_url="https://u", api_key="p", updated_at=50)]
        remote = [make_provider(id="b", name="b", base_url="https://u", api_key="p", updated_at=80)]

        result = merge_providers(local, remote)

        assert [(p.id, p.name) for p in result.merged] == [("b", "b")]
        assert result.replaced == {"a": "b"}
        assert result.has_changes is True

    def test_same_credentials_older_remote_discarded(self, make_provider):
        local = [make_provider(id="a", base_url="https://u", api_key="p", updated_at=90)]
        remote = [make_provider(id="b", base_url="https://u", api_key="p", updated_at=80)]

        result = merge_providers(local, remote)

        assert [p.id for p in result.merged] == ["a"]
        assert result.has_changes is False

    def test_new_remote_renamed_on_collision(self, make_provider):
        local = [
            make_provider(id="a", name="work", base_url="https://a"),
            make_provider(id="b", name="work_2", base_url="https://b"),
        ]
        remote = [make_provider(id="c", name="work", base_url="https://c")]

        result = merge_providers(local, remote)

        assert [p.name for p in result.merged] == ["work", "work_2", "work_3"]
        assert result.has_changes is True

    def test_winning_remote_renamed_if_name_taken(self, make_provider):
        local = [
            make_provider(id="a", name="one", base_url="https://u", api_key="p", updated_at=1),
            make_provider(id="b", name="two", base_url="https://v", api_key="q"),
        ]
        remote = [make_provider(id="c", name="two", base_url="https://u", api_key="p", updated_at=5)]

        result = merge_providers(local, remote)

        assert [p.name for p in result.merged] == ["two_2", "two"]

    def test_older_record_keeps_contested_name(self, make_provider):
        local = [make_provider(id="b", name="x", base_url="https://b", created_at=2)]
        remote = [make_provider(id="a", name="x", base_url="https://a", created_at=1)]

        result = merge_providers(local, remote)

        assert {p.id: p.name for p in result.merged} == {"a": "x", "b": "x_2"}
        assert local[0].name == "x"

    def test_alternating_merges_converge(self, make_provider):
        first_machine = make_provider(id="a", name="x", base_url="https://a", created_at=1)
        second_machine = make_provider(id="b", name="x", base_url="https://b", created_at=2)

        uploaded = merge_providers([first_machine], [second_machine]).merged
        second = merge_providers([second_machine], uploaded)

        assert {p.id: p.name for p in second.merged} == {"a": "x", "b": "x_2"}
        assert merge_providers(uploaded, second.merged).has_changes is False
        assert merge_providers(second.merged, uploaded).has_changes is False

    def test_identical_sets(self, make_provider):
        records = [make_provider(id="a"), make_provider(id="b", name="b", base_url="https://b")]
        assert merge_providers(records, list(records)).has_changes is False

    def test_inputs_not_mutated(self, make_provider):
        local = [make_provider(id="a", name="x", base_url="https://a")]
        remote = [make_provider(id="b", name="x", base_url="https://b")]
        merge_providers(local, remote)
        assert remote[0].name == "x"


class TestMergePresets:
    def test_union_local_wins(self):
        local = [PresetTemplate("A", "https://local")]
        remote = [PresetTemplate("A", "https://remote"), PresetTemplate("B", "https://b")]

        merged = merge_presets(local, remote)

        assert [(p.name, p.base_url) for p in merged] == [("A", "https://local"), ("B", "https://b")]

    def test_both_absent(self):
        assert merge_presets(None, None) is None


@pytest.fixture
def seed(paths):
    """Write providers into a tool's local store and make the first one active."""

    def _seed(tool, *providers, presets=None):
        storage = ToolStorage(
            providers=list(providers),
            current_provider_id=providers[0].id if providers else None,
            presets=presets,
        )
        save_storage(paths.storage_file(tool.value), storage)
        return storage

    return _seed


def engine_for(paths, client, password="pw", tools=(Tool.CODEX, Tool.CLAUDE, Tool.GEMINI), **kwargs):
    return SyncEngine(paths, client, password, tools=tools, **kwargs)


class TestUpload:
    def test_uploads_encrypted_documents(self, paths, dav_client, fake_dav, seed, make_provider, sync_config):
        save_sync_config(sync_config, paths)
        seed(Tool.CODEX, make_provider(), presets=[PresetTemplate("Mine", "https://m")])

        report = engine_for(paths, dav_client).upload()

        assert report.tools_changed == ["codex", "claude", "gemini"]
        remote = json.loads(fake_dav.files["/switchboard/codex.json"])
        assert remote["currentProviderId"] == "codex-1-aaaaaa"
        assert remote["providers"][0]["apiKey"] != "sk-test-1234567890"
        assert remote["presets"] == [{"name": "Mine", "baseUrl": "https://m", "description": ""}]
        assert json.loads(fake_dav.files["/switchboard/claude.json"]) == {"providers": []}
        assert load_sync_config(paths).last_sync is not None

    def test_requires_password(self, paths, dav_client):
        with pytest.raises(ValidationError):
            SyncEngine(paths, dav_client, "")


class TestDownload:
    def test_no_remote_data(self, paths, dav_client, seed, make_provider):
        seed(Tool.CODEX, make_provider())
        before = paths.storage_file("codex").read_bytes()

        with pytest.raises(NotFoundError, match="upload first"):
            engine_for(paths, dav_client).download()

        assert paths.storage_file("codex").read_bytes() == before

    def test_replaces_local_and_applies(self, paths, dav_client, seed, make_provider):
        seed(Tool.CODEX, make_provider(name="remote-one"))
        engine_for(paths, dav_client, tools=(Tool.CODEX,)).upload()
        seed(Tool.CODEX, make_provider(id="codex-2-b", name="local-only"), presets=[PresetTemplate("P", "https://p")])

        report = engine_for(paths, dav_client).download()

        storage = load_storage(paths.storage_file("codex"))
        assert [p.name for p in storage.providers] == ["remote-one"]
        assert storage.providers[0].api_key == "sk-test-1234567890"
        assert [p.name for p in storage.presets] == ["P"]
        assert paths.codex_config.exists()
        assert report.tools_changed == ["codex"]
        assert "claude: no remote data" in report.skipped
        assert len(report.backups) == 1

    def test_wrong_password_changes_nothing(self, paths, dav_client, seed, make_provider):
        seed(Tool.CODEX, make_provider())
        engine_for(paths, dav_client).upload()
        before = paths.storage_file("codex").read_bytes()

        with pytest.raises(DecryptionError):
            engine_for(paths, dav_client, password="wrong").download()

        assert paths.storage_file("codex").read_bytes() == before
        assert not paths.codex_config.exists()

    def test_failure_rolls_back_earlier_tools(self, paths, dav_client, seed, make_provider):
        codex = make_provider(id="codex-1-a", name="c")
        claude = make_provider(id="claude-1-a", name="cl")
        gemini = make_provider(id="gemini-1-a", name="g")
        seed(Tool.CODEX, codex)
        seed(Tool.CLAUDE, claude)
        seed(Tool.GEMINI, gemini)
        engine_for(paths, dav_client).upload()

        # Local state diverges after the upload.
        seed(Tool.CODEX, make_provider(id="codex-9-z", name="local-codex"))
        seed(Tool.CLAUDE, make_provider(id="claude-9-z", name="local-claude"))
        codex_before = paths.storage_file("codex").read_bytes()
        claude_before = paths.storage_file("claude").read_bytes()

        def factory(tool, p):
            if tool is Tool.CLAUDE:
                writer = MagicMock()
                writer.target_paths = [p.claude_settings]
                writer.write.side_effect = ParseError(p.claude_settings, "boom")
                return writer
            return create_writer(tool, p)

        with pytest.raises(ParseError, match="boom"):
            engine_for(paths, dav_client, writer_factory=factory).download()

        assert paths.storage_file("codex").read_bytes() == codex_before
        assert paths.storage_file("claude").read_bytes() == claude_before
        assert not paths.codex_config.exists()
        assert not paths.codex_auth.exists()


class TestMerge:
    def test_degrades_to_upload(self, paths, dav_client, fake_dav, seed, make_provider):
        seed(Tool.CODEX, make_provider())
        report = engine_for(paths, dav_client).merge()
        assert report.mode == "upload"
        assert "/switchboard/codex.json" in fake_dav.files

    def test_no_op_when_in_sync(self, paths, dav_client, fake_dav, seed, make_provider):
        seed(Tool.CODEX, make_provider())
        engine_for(paths, dav_client).upload()
        puts_before = fake_dav.count("PUT")

        report = engine_for(paths, dav_client).merge()

        assert report.already_in_sync is True
        assert report.backups == []
        assert fake_dav.count("PUT") == puts_before
        assert list(paths.store_dir.glob("*.backup.*")) == []

    def test_merges_both_sides(self, paths, dav_client, fake_dav, seed, make_provider):
        seed(Tool.CODEX, make_provider(id="codex-1-r", name="shared", base_url="https://r"))
        engine_for(paths, dav_client, tools=(Tool.CODEX,)).upload()
        seed(Tool.CODEX, make_provider(id="codex-2-l", name="shared", base_url="https://l"))

        report = engine_for(paths, dav_client).merge()

        assert report.tools_changed == ["codex"]
        assert len(report.backups) == 1
        local = load_storage(paths.storage_file("codex"))
        assert sorted(p.name for p in local.providers) == ["shared", "shared_2"]
        assert local.current_provider_id == "codex-2-l"

        remote_names = {p["name"] for p in json.loads(fake_dav.files["/switchboard/codex.json"])["providers"]}
        assert remote_names == {"shared", "shared_2"}

    def test_current_pointer_follows_replacement(self, paths, dav_client, seed, make_provider):
        seed(Tool.CODEX, make_provider(id="codex-2-new", name="b", base_url="https://u", api_key="p", updated_at=80))
        engine_for(paths, dav_client, tools=(Tool.CODEX,)).upload()
        seed(Tool.CODEX, make_provider(id="codex-1-old", name="a", base_url="https://u", api_key="p", updated_at=50))

        engine_for(paths, dav_client, tools=(Tool.CODEX,)).merge()

        store = ProviderStore("codex", paths)
        assert [p.id for p in store.list()] == ["codex-2-new"]
        assert store.current().id == "codex-2-new"

    def test_upload_failure_rolls_back_local(self, paths, dav_client, fake_dav, seed, make_provider):
        seed(Tool.CODEX, make_provider(id="codex-1-r", name="r", base_url="https://r"))
        engine_for(paths, dav_client, tools=(Tool.CODEX,)).upload()
        seed(Tool.CODEX, make_provider(id="codex-2-l", name="l", base_url="https://l"))
        before = paths.storage_file("codex").read_bytes()
        fake_dav.fail_puts = 1

        with pytest.raises(TransportError):
            engine_for(paths, dav_client, tools=(Tool.CODEX,)).merge()

        assert paths.storage_file("codex").read_bytes() == before
