"""Tests for the command line interface."""

import logging

import pytest
import yaml
from click.testing import CliRunner

from threatsmanager import __version__
from threatsmanager.catalogs import STANDARD_SEVERITIES, STANDARD_STRENGTHS
from threatsmanager.cli import cli
from threatsmanager.entities import EntityType
from threatsmanager.parser import load_threat_model, save_threat_model
from threatsmanager.scope import Scope


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture(autouse=True)
def restore_logging():
    """The CLI reconfigures the root logger; put the previous handlers back afterwards."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def saved_graph(graph, tmp_path):
    folder = tmp_path / "source"
    folder.mkdir()
    save_threat_model(graph.model, folder)
    return folder


def _loaded(path):
    model = load_threat_model(path)
    model.dispose()
    return model


class TestInit:
    def test_init_creates_model(self, runner, tmp_path):
        folder = tmp_path / "new-model"
        result = runner.invoke(cli, ["init", str(folder), "--name", "Payments", "--owner", "Alice"])

        assert result.exit_code == 0
        assert "Threat model initialized successfully!" in result.output
        model = _loaded(folder)
        assert model.name == "Payments"
        assert model.owner == "Alice"
        assert len(model.severities) == len(STANDARD_SEVERITIES)
        assert len(model.strengths) == len(STANDARD_STRENGTHS)

    def test_init_prompts_for_name(self, runner, tmp_path):
        folder = tmp_path / "prompted"
        result = runner.invoke(cli, ["init", str(folder)], input="Prompted\n")

        assert result.exit_code == 0
        assert _loaded(folder).name == "Prompted"

    def test_init_uses_settings(self, runner, tmp_path, monkeypatch):
        monkeypatch.setenv("THREATSMANAGER_DEFAULT_OWNER", "Security Team")
        monkeypatch.setenv("THREATSMANAGER_STANDARD_CATALOGS", "false")
        folder = tmp_path / "bare"

        result = runner.invoke(cli, ["init", str(folder), "--name", "Bare"])

        assert result.exit_code == 0
        model = _loaded(folder)
        assert model.owner == "Security Team"
        assert model.severities == []

    def test_init_existing_directory(self, runner, tmp_path):
        result = runner.invoke(cli, ["init", str(tmp_path), "--name", "Exists"])

        assert result.exit_code == 1
        assert "Directory already exists" in result.output

    def test_version(self, runner):
        result = runner.invoke(cli, ["--version"])
        assert __version__ in result.output


class TestValidate:
    def test_valid_model(self, runner, saved_graph):
        result = runner.invoke(cli, ["validate", str(saved_graph)])

        assert result.exit_code == 0
        assert "Validation successful!" in result.output
        assert "Threat Events: 3" in result.output

    def test_dangling_reference(self, runner, graph, tmp_path):
        path = tmp_path / "model.yaml"
        save_threat_model(graph.model, path)
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
        data["severities"] = [x for x in data["severities"] if x["id"] != 75]
        path.write_text(yaml.safe_dump(data, sort_keys=False), encoding="utf-8")

        result = runner.invoke(cli, ["validate", str(path)])

        assert result.exit_code == 1
        assert "Validation failed" in result.output
        assert "severity 75 has not been selected" in result.output

    def test_unreadable_model(self, runner, tmp_path):
        (tmp_path / "threat-model.yaml").write_text("name: [unclosed", encoding="utf-8")

        result = runner.invoke(cli, ["validate", str(tmp_path)])

        assert result.exit_code == 1
        assert "YAML parse error" in result.output

    def test_recursive(self, runner, graph, tmp_path):
        for folder in ("one", "two"):
            (tmp_path / folder).mkdir()
            save_threat_model(graph.model, tmp_path / folder)

        result = runner.invoke(cli, ["validate", "--recursive", str(tmp_path)])

        assert result.exit_code == 0
        assert result.output.count("Validation successful!") == 2

    def test_recursive_without_models(self, runner, tmp_path):
        result = runner.invoke(cli, ["validate", "-r", str(tmp_path)])

        assert result.exit_code == 0
        assert "No threat models found." in result.output


class TestSummary:
    def test_summary(self, runner, saved_graph):
        result = runner.invoke(cli, ["summary", str(saved_graph)])

        assert result.exit_code == 0
        assert "Test Model" in result.output
        assert "Fully mitigated: 1" in result.output
        assert "Not mitigated: 1" in result.output
        assert "High [High]: 1 threat events, 1 threat types" in result.output
        assert "Info [Info]: 0 threat events" in result.output
        assert "implemented: 1" in result.output

    def test_schemas(self, runner, saved_graph):
        result = runner.invoke(cli, ["schemas", str(saved_graph)])

        assert result.exit_code == 0
        assert "[auto]" in result.output
        assert "applies to: Process, Data Store" in result.output
        assert "- Criticality (list)" in result.output


class TestSchemaCommands:
    def test_apply_schema(self, runner, model, tmp_path):
        schema = model.add_schema("Ownership", "urn:test")
        schema.applies_to = Scope.PROCESS
        owner = schema.add_property_type("Owner")
        process = model.add_entity(EntityType.PROCESS, "Worker")
        save_threat_model(model, tmp_path)

        result = runner.invoke(cli, ["apply-schema", str(tmp_path), "Ownership", "--namespace", "urn:test"])

        assert result.exit_code == 0
        assert "applied" in result.output
        assert _loaded(tmp_path).get_entity(process.id).get_property(owner.id) is not None

    def test_apply_unknown_schema(self, runner, saved_graph):
        result = runner.invoke(cli, ["apply-schema", str(saved_graph), "Missing", "-n", "urn:test"])

        assert result.exit_code == 1
        assert "Schema not found" in result.output

    def test_remove_schema_in_use(self, runner, graph, saved_graph):
        args = ["remove-schema", str(saved_graph), "Security", "--namespace", graph.schema.namespace]

        result = runner.invoke(cli, args)
        assert result.exit_code == 1
        assert "use --force" in result.output

        result = runner.invoke(cli, args + ["--force"])
        assert result.exit_code == 0
        model = _loaded(saved_graph)
        assert model.schemas == []
        assert model.get_entity(graph.web.id).properties == []


class TestDuplicateAndMerge:
    def test_duplicate_everything(self, runner, graph, saved_graph, tmp_path):
        output = tmp_path / "copy"

        result = runner.invoke(cli, ["duplicate", str(saved_graph), str(output), "--name", "Copy", "--everything"])

        assert result.exit_code == 0
        copy = _loaded(output)
        assert copy.name == "Copy"
        assert copy.id != graph.model.id
        assert [x.id for x in copy.entities] == [x.id for x in graph.model.entities]

    def test_duplicate_with_definition(self, runner, graph, saved_graph, tmp_path):
        definition = tmp_path / "selection.yaml"
        definition.write_text(yaml.safe_dump({
            "allSeverities": True,
            "allStrengths": True,
            "allMitigations": True,
            "threatTypes": [str(graph.spoofing.id)],
        }), encoding="utf-8")
        output = tmp_path / "catalog.yaml"

        result = runner.invoke(cli, ["duplicate", str(saved_graph), str(output), "-n", "Catalog", "-d", str(definition)])

        assert result.exit_code == 0
        assert [x.name for x in _loaded(output).threat_types] == ["Spoofing"]

    def test_duplicate_into_missing_folder(self, runner, saved_graph, tmp_path):
        output = tmp_path / "exports" / "2024" / "copy.yaml"

        result = runner.invoke(cli, ["duplicate", str(saved_graph), str(output), "-n", "Copy", "--everything"])

        assert result.exit_code == 0
        assert output.is_file()
        assert _loaded(output).name == "Copy"

    def test_duplicate_rejected(self, runner, saved_graph, tmp_path):
        definition = tmp_path / "selection.yaml"
        definition.write_text(yaml.safe_dump({"allEntities": True}), encoding="utf-8")

        result = runner.invoke(cli, ["duplicate", str(saved_graph), str(tmp_path / "out"), "-n", "Copy",
                                     "-d", str(definition)])

        assert result.exit_code == 1
        assert "Duplication rejected:" in result.output
        assert not (tmp_path / "out").exists()

    def test_selection_required(self, runner, saved_graph, tmp_path):
        result = runner.invoke(cli, ["duplicate", str(saved_graph), str(tmp_path / "out"), "-n", "Copy"])

        assert result.exit_code == 2
        assert "Either --everything or --definition is required" in result.output

    def test_invalid_definition(self, runner, saved_graph, tmp_path):
        definition = tmp_path / "selection.yaml"
        definition.write_text(yaml.safe_dump({"severities": ["not-a-number"]}), encoding="utf-8")

        result = runner.invoke(cli, ["merge", str(saved_graph), str(saved_graph), "-d", str(definition)])

        assert result.exit_code == 2
        assert "Invalid definition" in result.output

    def test_merge_everything(self, runner, saved_graph, tmp_path):
        target = tmp_path / "target"
        runner.invoke(cli, ["init", str(target), "--name", "Target"])

        result = runner.invoke(cli, ["merge", str(target), str(saved_graph), "--everything"])

        assert result.exit_code == 0
        assert "Merged Test Model into Target." in result.output
        model = _loaded(target)
        assert [x.name for x in model.threat_types] == ["Spoofing", "Tampering"]
        assert model.entities == []

    def test_merge_rejected(self, runner, saved_graph, tmp_path):
        target = tmp_path / "target"
        runner.invoke(cli, ["init", str(target), "--name", "Target"])
        definition = tmp_path / "selection.yaml"
        definition.write_text(yaml.safe_dump({"allThreatTypes": True}), encoding="utf-8")

        result = runner.invoke(cli, ["merge", str(target), str(saved_graph), "-d", str(definition)])

        assert result.exit_code == 1
        assert "Merge rejected:" in result.output
        assert _loaded(target).threat_types == []
