# ABOUTME: Unit tests for the Docker image configuration resolver
# ABOUTME: Tests registry image naming, push command resolution and image build checks

from pathlib import Path

import pytest

from helmgen.errors import ConfigurationError
from helmgen.images import (
    IMAGE_CHECK_SOURCE,
    check_images,
    configure_image_names,
    normalize_repository_name,
    resolve_images,
    resolve_push_command,
    resolve_target_image_name,
)
from helmgen.models import ApplicationConfig


@pytest.mark.unit
class TestResolveTargetImageName:
    """Tests for resolve_target_image_name."""

    def test_with_registry(self):
        assert resolve_target_image_name("Store", "myrepo") == "myrepo/store"

    def test_without_registry(self):
        assert resolve_target_image_name("Store", None) == "store"
        assert resolve_target_image_name("Store", "") == "store"

    def test_trailing_slash_ignored(self):
        assert resolve_target_image_name("Store", "registry.example.com/team/") == "registry.example.com/team/store"

    def test_normalize_repository_name(self):
        assert normalize_repository_name("  myrepo/ ") == "myrepo"
        assert normalize_repository_name("   ") is None
        assert normalize_repository_name(None) is None


@pytest.mark.unit
class TestResolvePushCommand:
    def test_configured_command_kept(self):
        assert resolve_push_command("gcloud docker -- push") == "gcloud docker -- push"

    def test_whitespace_collapsed(self):
        assert resolve_push_command("  docker   push ") == "docker push"

    def test_empty_falls_back_to_default(self):
        assert resolve_push_command("", "podman push") == "podman push"
        assert resolve_push_command(None) == "docker push"


@pytest.mark.unit
class TestConfigureImageNames:
    """Tests for configure_image_names and resolve_images."""

    def test_sets_target_names_and_keeps_order(self):
        apps = [
            ApplicationConfig(base_name="Store", folder="store"),
            ApplicationConfig(base_name="Invoice", folder="invoice"),
        ]

        resolved = configure_image_names(apps, "myrepo")

        assert [a.target_image_name for a in resolved] == ["myrepo/store", "myrepo/invoice"]
        assert apps[0].target_image_name == ""

    def test_empty_selection_rejected(self):
        with pytest.raises(ConfigurationError, match="No applications"):
            configure_image_names([], "myrepo")

    def test_empty_base_name_rejected(self, tmp_path: Path):
        apps = [ApplicationConfig(base_name=" ", folder="broken")]
        with pytest.raises(ConfigurationError) as exc_info:
            configure_image_names(apps, None, tmp_path)
        assert exc_info.value.path == str(tmp_path / "broken")

    def test_resolve_images(self):
        images = resolve_images([ApplicationConfig(base_name="Store", folder="store")], "myrepo/", "", "docker push")

        assert images.repository_name == "myrepo"
        assert images.push_command == "docker push"
        assert images.apps[0].target_image_name == "myrepo/store"


@pytest.mark.unit
class TestCheckImages:
    """Tests for check_images."""

    def test_no_warning_when_cache_present(self, workspace: Path, write_app):
        write_app("store", jib_cache=True)
        apps = [ApplicationConfig(base_name="store", folder="store")]

        assert check_images(apps, workspace / "apps") == []

    def test_warning_per_missing_cache(self, workspace: Path, write_app):
        write_app("store", "Store", jib_cache=False)
        write_app("invoice", "Invoice", build_tool="gradle", jib_cache=False)
        apps = [
            ApplicationConfig(base_name="Store", folder="store"),
            ApplicationConfig(base_name="Invoice", folder="invoice", build_tool="gradle"),
        ]

        warnings = check_images(apps, workspace / "apps")

        assert [w.source for w in warnings] == [IMAGE_CHECK_SOURCE, IMAGE_CHECK_SOURCE]
        assert "./mvnw -ntp -Pprod verify jib:dockerBuild" in warnings[0].hint
        assert "./gradlew bootJar -Pprod jibDockerBuild" in warnings[1].hint
        assert "Invoice" in warnings[1].message

    def test_empty_cache_counts_as_missing(self, workspace: Path, write_app):
        app_dir = write_app("store", jib_cache=False)
        (app_dir / "target" / "jib-cache").mkdir(parents=True)

        warnings = check_images([ApplicationConfig(base_name="store", folder="store")], workspace / "apps")

        assert len(warnings) == 1
