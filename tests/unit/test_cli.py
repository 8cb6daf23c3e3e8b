# ABOUTME: Unit tests for the helmgen command line
# ABOUTME: Tests option handling, prompter selection and exit codes

import json
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
import yaml
from click.testing import CliRunner
from rich.console import Console

from helmgen.cli import EXIT_ABORTED, EXIT_FATAL, build_prompter, main
from helmgen.errors import CollectionAborted, ConfigurationError, ValidationError
from helmgen.prompts import QuestionaryPrompter, ScriptedPrompter


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture(autouse=True)
def no_global_logging():
    # Keep structlog pointed at the real stderr, not the runner's temporary stream
    with patch("helmgen.cli.configure_logging"):
        yield


@pytest.mark.unit
class TestBuildPrompter:
    """Tests for build_prompter."""

    def test_interactive_by_default(self, settings, destination: Path):
        prompter = build_prompter(settings, destination, None, False, Console())
        assert isinstance(prompter, QuestionaryPrompter)

    def test_answers_file_only(self, settings, destination: Path, tmp_path: Path):
        (destination / ".yo-rc.json").write_text(
            json.dumps({"generator-jhipster": {"appsFolders": ["store"], "kubernetesNamespace": "prod"}})
        )
        answers = tmp_path / "answers.yaml"
        answers.write_text(yaml.safe_dump({"namespace": "staging"}))

        prompter = build_prompter(settings, destination, answers, False, Console())

        assert isinstance(prompter, ScriptedPrompter)
        assert prompter._answers == {"namespace": "staging"}

    def test_regenerate_requires_previous_run(self, settings, destination: Path):
        with pytest.raises(ConfigurationError, match="No previous configuration"):
            build_prompter(settings, destination, None, True, Console())

    def test_regenerate_answers_from_defaults(self, settings, destination: Path):
        (destination / ".yo-rc.json").write_text(
            json.dumps({"generator-jhipster": {"appsFolders": ["store"], "directoryPath": "../apps/"}})
        )

        prompter = build_prompter(settings, destination, None, True, Console())

        assert isinstance(prompter, ScriptedPrompter)
        assert prompter._answers == {}
        assert prompter._use_defaults is True


@pytest.mark.unit
class TestMain:
    """Tests for the click command."""

    def test_version(self, runner: CliRunner):
        result = runner.invoke(main, ["--version"])
        assert result.exit_code == 0
        assert "helmgen" in result.output

    def test_full_run_from_answers_file(self, runner, destination: Path, tmp_path: Path, shop_apps, shop_answers):
        answers = tmp_path / "answers.yaml"
        answers.write_text(yaml.safe_dump(shop_answers))

        result = runner.invoke(
            main, ["--destination", str(destination), "--answers", str(answers), "--skip-checks"]
        )

        assert result.exit_code == 0, result.output
        assert "Helm configuration successfully generated!" in result.output
        assert (destination / "store-helm" / "Chart.yaml").is_file()
        assert (destination / ".yo-rc.json").is_file()

    def test_aborted_exit_code(self, runner, destination: Path):
        pipeline = MagicMock()
        pipeline.run = AsyncMock(side_effect=CollectionAborted("Question cancelled"))
        with patch("helmgen.cli.GenerationPipeline", return_value=pipeline):
            result = runner.invoke(main, ["--destination", str(destination), "--skip-checks"])

        assert result.exit_code == EXIT_ABORTED
        assert "Aborted" in result.output

    def test_fatal_error_exit_code(self, runner, destination: Path):
        pipeline = MagicMock()
        pipeline.run = AsyncMock(side_effect=ValidationError(["ingress domain is required"]))
        with patch("helmgen.cli.GenerationPipeline", return_value=pipeline):
            result = runner.invoke(main, ["--destination", str(destination)])

        assert result.exit_code == EXIT_FATAL
        assert "ingress domain is required" in result.output

    def test_options_override_settings(self, runner, destination: Path):
        pipeline = MagicMock()
        pipeline.run = AsyncMock(return_value=None)
        with patch("helmgen.cli.GenerationPipeline", return_value=pipeline) as factory:
            result = runner.invoke(
                main,
                ["--destination", str(destination), "--skip-checks", "--log-level", "debug", "--json-logs"],
            )

        assert result.exit_code == 0, result.output
        settings = factory.call_args[0][0]
        assert settings.skip_checks is True
        assert settings.log_level == "DEBUG"
        assert settings.json_logs is True

    def test_invalid_environment(self, runner, destination: Path):
        result = runner.invoke(
            main, ["--destination", str(destination)], env={"HELMGEN_LOG_LEVEL": "LOUD"}
        )
        assert result.exit_code == EXIT_FATAL
        assert "Invalid configuration" in result.output


@pytest.mark.unit
class TestStaleStoredAnswers:
    """Runs over a store recorded against a different set of applications."""

    def write_store(self, destination: Path, **section) -> None:
        section = {"directoryPath": "../apps/", "deploymentApplicationType": "microservice", **section}
        (destination / ".yo-rc.json").write_text(json.dumps({"generator-jhipster": section}))

    def read_store(self, destination: Path) -> dict:
        return json.loads((destination / ".yo-rc.json").read_text())["generator-jhipster"]

    def test_answers_file_narrows_stored_selection(
        self, runner, destination: Path, tmp_path: Path, write_app
    ):
        write_app("catalog", "Catalog", prodDatabaseType="mongodb")
        write_app("store", "Store", prodDatabaseType="mongodb")
        self.write_store(destination, appsFolders=["catalog", "store"], clusteredDbApps=["store"])
        answers = tmp_path / "answers.yaml"
        answers.write_text(yaml.safe_dump({"apps_folders": ["catalog"]}))

        result = runner.invoke(
            main, ["--destination", str(destination), "--answers", str(answers), "--skip-checks"]
        )

        assert result.exit_code == 0, result.output
        section = self.read_store(destination)
        assert section["appsFolders"] == ["catalog"]
        assert section["clusteredDbApps"] == []

    def test_regenerate_after_app_removed(self, runner, destination: Path, write_app):
        write_app("gateway", "Gateway", application_type="gateway")
        self.write_store(destination, appsFolders=["gateway", "invoice"], clusteredDbApps=[])

        result = runner.invoke(main, ["--destination", str(destination), "--regenerate", "--skip-checks"])

        assert result.exit_code == 0, result.output
        assert self.read_store(destination)["appsFolders"] == ["gateway"]
        assert (destination / "gateway-helm" / "Chart.yaml").is_file()
