"""End-to-end tests for POST /pipeline."""

import asyncio
import shlex
import sys

import httpx
import pytest
from fastapi.testclient import TestClient

from api.src.main import create_app, check_settings
from api.src.config import Settings
from api.src.models.pipeline import PipelineConfig
from api.src.services.auth import compute_trigger_token
from api.src.services.controller import PipelineController
from runner.src.models.step import PipelineStep
from runner.src.services.command_runner import CommandRunner, build_base_environment
from runner.src.services.executor import PipelineExecutor

SECRET = b"route-secret"

def py(code: str) -> str:
    return f"{shlex.quote(sys.executable)} -c {shlex.quote(code)}"

def make_client(steps):
    executor = PipelineExecutor(
        steps,
        runner=CommandRunner(output_sink=lambda *args: None),
        base_environment=build_base_environment(),
    )
    controller = PipelineController(PipelineConfig(pipeline_name="web", secret=SECRET), executor)
    return TestClient(create_app(controller))

def headers(trigger):
    return {"X-Trigger-Token": compute_trigger_token(SECRET, trigger)}

@pytest.fixture
def client():
    return make_client([
        PipelineStep(name="Build", command=py("print('built')"), environment_variables={"NODE_ENV": "production"}),
        PipelineStep(name="Deploy", command=py("print('deployed')")),
    ])

def test_empty_body_is_unauthorized(client):
    response = client.post("/pipeline", json={})
    assert response.status_code == 401
    assert response.text == "Unauthorized"

def test_non_json_body_is_unauthorized(client):
    response = client.post("/pipeline", content=b"trigger=x", headers=headers("x"))
    assert response.status_code == 401

def test_non_string_trigger_is_unauthorized(client):
    response = client.post("/pipeline", json={"trigger": 5}, headers=headers("5"))
    assert response.status_code == 401

def test_wrong_token_is_unauthorized(client):
    response = client.post("/pipeline", json={"trigger": "x"}, headers={"X-Trigger-Token": "0" * 64})
    assert response.status_code == 401
    assert response.text == "Unauthorized"

def test_missing_token_is_unauthorized(client):
    response = client.post("/pipeline", json={"trigger": "x"})
    assert response.status_code == 401

def test_valid_trigger_runs_pipeline(client):
    response = client.post("/pipeline", json={"trigger": "x"}, headers=headers("x"))
    assert response.status_code == 200
    assert response.text == "Pipeline executed successfully"

def test_failing_step_returns_500():
    client = make_client([
        PipelineStep(name="Build", command=py("print('built')")),
        PipelineStep(name="Migrate", command=py("import sys; sys.exit(1)")),
        PipelineStep(name="Deploy", command=py("print('deployed')")),
    ])
    
    response = client.post("/pipeline", json={"trigger": "x"}, headers=headers("x"))
    
    assert response.status_code == 500
    assert response.text.startswith("Error executing pipeline: ")
    assert "Migrate" in response.text
    assert "exit code 1" in response.text

def test_missing_binary_returns_500():
    client = make_client([
        PipelineStep(name="Build", command="definitely-not-a-real-binary-4f1c"),
    ])
    
    response = client.post("/pipeline", json={"trigger": "x"}, headers=headers("x"))
    
    assert response.status_code == 500
    assert "Build" in response.text
    assert "could not be started" in response.text

def test_status_endpoint(client):
    response = client.get("/pipeline/status")
    assert response.status_code == 200
    assert response.json() == {"pipeline": "web", "state": "idle", "steps": ["Build", "Deploy"]}

def test_health_endpoint(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.json()["pipeline"] == "web"

def test_check_settings_requires_secret_and_tls(tmp_path):
    problems = check_settings(Settings(_env_file=None))
    assert "TRIGGER_SECRET is not set" in problems
    assert "TLS certificate and key are required" in problems
    
    cert = tmp_path / "cert.pem"
    key = tmp_path / "key.pem"
    cert.write_text("cert")
    key.write_text("key")
    settings = Settings(_env_file=None, trigger_secret="s", tls_certificate=str(cert), tls_key=str(key))
    assert check_settings(settings) == []

def test_check_settings_reports_missing_tls_files(tmp_path):
    settings = Settings(
        _env_file=None,
        trigger_secret="s",
        tls_certificate=str(tmp_path / "cert.pem"),
        tls_key=str(tmp_path / "key.pem"),
    )
    assert len(check_settings(settings)) == 2

def test_second_request_while_running_is_conflict(tmp_path):
    release = tmp_path / "release"
    code = (
        "import os, time\n"
        f"while not os.path.exists({str(release)!r}):\n"
        "    time.sleep(0.05)"
    )
    executor = PipelineExecutor(
        [PipelineStep(name="Deploy", command=py(code))],
        runner=CommandRunner(output_sink=lambda *args: None),
        base_environment=build_base_environment(),
    )
    controller = PipelineController(PipelineConfig(pipeline_name="web", secret=SECRET), executor)
    app = create_app(controller)
    
    async def scenario():
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
            first = asyncio.ensure_future(
                client.post("/pipeline", json={"trigger": "x"}, headers=headers("x"))
            )
            for _ in range(200):
                if executor.is_running:
                    break
                await asyncio.sleep(0.05)
            
            second = await client.post("/pipeline", json={"trigger": "x"}, headers=headers("x"))
            assert not first.done()
            
            release.write_text("go")
            return await first, second
    
    first, second = asyncio.run(asyncio.wait_for(scenario(), 30))
    
    assert second.status_code == 409
    assert second.text == "Pipeline already running"
    assert first.status_code == 200
    assert first.text == "Pipeline executed successfully"
