"""Tests for the CLI module."""

import json

import pytest

from anomalyoverlay.cli import main
from anomalyoverlay.errors import ModelControlError
from anomalyoverlay.schemas import AnomalyResult, ModelControlResult, ResponsePayload


@pytest.fixture
def services(mocker):
    svc = mocker.Mock()
    mocker.patch("anomalyoverlay.cli.build_services", return_value=svc)
    return svc


def test_cli_help():
    """Test CLI help display."""
    with pytest.raises(SystemExit) as exc_info:
        main(["--help"])
    assert exc_info.value.code == 0


def test_cli_requires_command():
    with pytest.raises(SystemExit) as exc_info:
        main([])
    assert exc_info.value.code == 2


def test_detect_missing_file(services):
    result = main(["detect", "nonexistent.png", "--project", "p", "--version", "1"])
    assert result == 2
    services.pipeline.run.assert_not_called()


def test_detect_prints_payload(services, tmp_path, solid_image, capsys):
    image = tmp_path / "part.png"
    image.write_bytes(solid_image(4, 4))
    services.pipeline.run.return_value = ResponsePayload(
        DetectAnomalyResult=AnomalyResult(IsAnomalous=False, Confidence=0.25)
    )

    result = main(["detect", str(image), "--project", "p", "--version", "1"])

    assert result == 0
    sent = services.pipeline.run.call_args
    assert sent.args[0].mime_type == "image/png"
    assert sent.args[1:] == ("p", "1")
    out = json.loads(capsys.readouterr().out)
    assert out == {"DetectAnomalyResult": {"IsAnomalous": False, "Confidence": 0.25}}


def test_start_model(services, capsys):
    services.lookout.start_model.return_value = ModelControlResult(Status="STARTING")
    result = main(["start-model", "--project", "p", "--version", "1", "--client-token", "t"])

    assert result == 0
    services.lookout.start_model.assert_called_once_with("p", "1", 1, max_inference_units=None, client_token="t")
    assert json.loads(capsys.readouterr().out) == {"Status": "STARTING"}


def test_stop_model_failure(services, capsys):
    services.lookout.stop_model.side_effect = ModelControlError("Model is not hosted")
    result = main(["stop-model", "--project", "p", "--version", "1"])

    assert result == 1
    assert json.loads(capsys.readouterr().err.strip().splitlines()[-1]) == {"error": "Model is not hosted"}


def test_serve_uses_configured_port(monkeypatch, mocker):
    monkeypatch.setenv("PORT", "4100")
    app = mocker.Mock()
    mocker.patch("anomalyoverlay.cli.create_app", return_value=app)
    assert main(["serve"]) == 0
    app.run.assert_called_once_with(host="0.0.0.0", port=4100, threaded=True)
