"""
Tests for the conversion service and the model registry.
"""

import json
from unittest.mock import AsyncMock

import pytest

from helpers import set_behavior
from voice_clone.core.exceptions import ConversionError, ModelNotFoundError, ValidationError
from voice_clone.services import ConversionService, ConvertOptions, ModelRegistry
from voice_clone.trainer import ProcessRunner, RVCToolkit


@pytest.fixture
def toolkit(test_settings):
    return RVCToolkit(test_settings.toolkit, ProcessRunner(test_settings.toolkit))


@pytest.fixture
def service(toolkit, test_settings):
    return ConversionService(toolkit=toolkit, paths=test_settings.paths)


@pytest.fixture
def input_file(tmp_path):
    path = tmp_path / "input.wav"
    path.write_bytes(b"RIFF" + b"\x00" * 32)
    return path


def publish_model(paths, name, with_index=False):
    paths.get_model_path(name).write_bytes(b"weights")
    if with_index:
        paths.get_index_path(name).write_bytes(b"index")


class TestConversionService:
    """Single-shot inference"""

    @pytest.mark.asyncio
    async def test_convert_without_index(self, service, test_settings, input_file, tmp_path):
        publish_model(test_settings.paths, "alice")
        output = tmp_path / "out" / "result.wav"

        result = await service.convert(
            ConvertOptions(input_path=input_file, output_path=output, model_name="alice", pitch_shift=3)
        )

        assert result.output_path == output
        assert result.used_index is False
        assert result.processing_time_ms >= 0
        args = json.loads(output.read_text())
        assert args["--model_path"] == str(test_settings.paths.get_model_path("alice"))
        assert args["--pitch_shift"] == "3"
        assert "--index_path" not in args

    @pytest.mark.asyncio
    async def test_convert_with_index(self, service, test_settings, input_file, tmp_path):
        publish_model(test_settings.paths, "alice", with_index=True)
        output = tmp_path / "result.wav"

        result = await service.convert(
            ConvertOptions(input_path=input_file, output_path=output, model_name="alice")
        )

        assert result.used_index is True
        args = json.loads(output.read_text())
        assert args["--index_path"] == str(test_settings.paths.get_index_path("alice"))
        assert args["--index_rate"] == "0.75"
        assert args["--f0_method"] == "rmvpe"

    @pytest.mark.asyncio
    async def test_missing_model_spawns_nothing(self, test_settings, input_file, tmp_path):
        runner = ProcessRunner(test_settings.toolkit)
        runner.run = AsyncMock()
        service = ConversionService(
            toolkit=RVCToolkit(test_settings.toolkit, runner), paths=test_settings.paths
        )

        with pytest.raises(ModelNotFoundError):
            await service.convert(
                ConvertOptions(input_path=input_file, output_path=tmp_path / "o.wav", model_name="ghost")
            )

        runner.run.assert_not_called()

    @pytest.mark.asyncio
    async def test_toolkit_failure_raises_conversion_error(
        self, service, test_settings, fake_toolkit, input_file, tmp_path
    ):
        publish_model(test_settings.paths, "alice")
        set_behavior(fake_toolkit, convert="fail")

        with pytest.raises(ConversionError) as exc_info:
            await service.convert(
                ConvertOptions(input_path=input_file, output_path=tmp_path / "o.wav", model_name="alice")
            )

        assert exc_info.value.returncode == 3
        assert "convert exploded" in exc_info.value.stderr_tail


class TestModelRegistry:
    """Published model listing"""

    def test_empty_registry(self, test_settings):
        assert ModelRegistry(test_settings.paths).list_models() == []

    def test_list_and_get(self, test_settings):
        publish_model(test_settings.paths, "alice", with_index=True)
        publish_model(test_settings.paths, "bob")
        registry = ModelRegistry(test_settings.paths)

        models = registry.list_models()

        assert [m["name"] for m in models] == ["alice", "bob"]
        assert models[0]["has_index"] is True
        assert models[1]["has_index"] is False
        assert models[0]["file"] == "alice.pth"
        assert registry.get_model("bob")["name"] == "bob"

    def test_get_missing_model(self, test_settings):
        with pytest.raises(ModelNotFoundError):
            ModelRegistry(test_settings.paths).get_model("ghost")

    def test_delete_removes_weights_and_index(self, test_settings):
        publish_model(test_settings.paths, "alice", with_index=True)
        registry = ModelRegistry(test_settings.paths)

        registry.delete_model("alice")

        assert not test_settings.paths.get_model_path("alice").exists()
        assert not test_settings.paths.get_index_path("alice").exists()
        with pytest.raises(ModelNotFoundError):
            registry.delete_model("alice")

    def test_names_are_validated(self, test_settings):
        with pytest.raises(ValidationError):
            ModelRegistry(test_settings.paths).get_model("../etc/passwd")
