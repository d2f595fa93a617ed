import json
import pytest
from click.testing import CliRunner
from dockyard.CLI.main import cli

COMPOSE = """
version: "3.8"
services:
  web:
    image: nginx:latest
    ports: ["80:80"]
    depends_on: [db]
  db:
    image: postgres:13
    environment:
      POSTGRES_PASSWORD: example
"""


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def state(tmp_path):
    return str(tmp_path / "state.json")


def invoke(runner, state, *args):
    return runner.invoke(cli, ['--state', state, *args])


def test_cli_help(runner):
    result = runner.invoke(cli, ['--help'])
    assert result.exit_code == 0
    assert 'compose' in result.output
    assert 'Create and start a unit' in result.output


def test_run_without_image(runner):
    result = runner.invoke(cli, ['run', '-d'])
    assert result.exit_code != 0
    assert 'MissingArgument' in result.output


def test_unknown_command(runner):
    result = runner.invoke(cli, ['commit', 'web'])
    assert result.exit_code == 2
    assert 'UnknownCommand' in result.output
    assert 'commit' in result.output


def test_unknown_compose_command(runner):
    result = runner.invoke(cli, ['compose', 'scale'])
    assert result.exit_code == 2
    assert "UnknownCommand: unknown command 'compose scale'" in result.output


def test_unknown_unit(runner):
    result = runner.invoke(cli, ['stop', 'ghost'])
    assert result.exit_code == 5
    assert 'UnitNotFound' in result.output
    assert 'ghost' in result.output


def test_state_survives_invocations(runner, state):
    result = invoke(runner, state, 'run', '-it', '-d', '--name', 'cache', '-p', '6379:6379', 'redis:7')
    assert result.exit_code == 0, result.output
    unit_id = result.output.strip()
    assert len(unit_id) == 64

    result = invoke(runner, state, 'ps')
    assert 'cache' in result.output

    assert invoke(runner, state, 'pause', 'cache').exit_code == 0
    result = invoke(runner, state, 'rm', 'cache')
    assert result.exit_code == 5
    assert 'InvalidTransition' in result.output

    assert invoke(runner, state, 'start', 'cache').exit_code == 0
    assert invoke(runner, state, 'stop', unit_id[:8]).exit_code == 0
    assert invoke(runner, state, 'rm', 'cache').exit_code == 0

    with open(state) as f:
        snapshot = json.load(f)
    assert snapshot['units'][0]['state'] == 'removed'
    assert snapshot['units'][0]['interactive'] is True


def test_logs_and_exec(runner, state):
    invoke(runner, state, 'run', '-d', '--name', 'box', '-e', 'GREETING=hi', 'busybox')

    result = invoke(runner, state, 'exec', 'box', 'env')
    assert result.exit_code == 0
    assert 'GREETING=hi' in result.output

    result = invoke(runner, state, 'exec', 'box', 'false')
    assert result.exit_code == 1

    result = invoke(runner, state, 'logs', 'box')
    assert 'box created from image busybox' in result.output
    assert 'box exec env' in result.output


def test_build_and_images(runner, state, tmp_path):
    context = tmp_path / "app"
    context.mkdir()
    (context / "Dockerfile").write_text('FROM python:3.12\nCMD ["python", "-m", "http.server"]\n')

    result = invoke(runner, state, 'build', '-t', 'myapp:dev', str(context))
    assert result.exit_code == 0, result.output
    assert 'Successfully tagged myapp:dev' in result.output

    result = invoke(runner, state, 'images')
    assert 'myapp' in result.output
    assert 'built' in result.output

    result = invoke(runner, state, 'build', '-t', 'myapp:dev')
    assert result.exit_code == 2
    assert 'MissingArgument' in result.output


def test_rmi_unknown(runner):
    result = runner.invoke(cli, ['rmi', 'nothing-here'])
    assert result.exit_code == 6
    assert 'ImageNotFound' in result.output


def test_compose_up_and_down(runner, state, tmp_path):
    compose_file = tmp_path / "docker-compose.yml"
    compose_file.write_text(COMPOSE)

    result = invoke(runner, state, '-f', str(compose_file), '-p', 'demo', 'compose', 'up', '-d')
    assert result.exit_code == 0, result.output
    assert result.output.splitlines() == ['Container demo-db-1  Started', 'Container demo-web-1  Started']

    result = invoke(runner, state, 'ps')
    assert 'demo-web-1' in result.output
    assert 'demo-db-1' in result.output

    # running units are left alone
    result = invoke(runner, state, '-f', str(compose_file), '-p', 'demo', 'compose', 'up', '-d')
    assert result.exit_code == 0

    result = invoke(runner, state, '-f', str(compose_file), '-p', 'demo', 'compose', 'down')
    assert result.output.splitlines() == ['Container demo-web-1  Removed', 'Container demo-db-1  Removed']


def test_compose_cycle(runner, tmp_path):
    compose_file = tmp_path / "docker-compose.yml"
    compose_file.write_text("services:\n  a:\n    image: x\n    depends_on: [b]\n  b:\n    image: y\n    depends_on: [a]\n")

    result = runner.invoke(cli, ['-f', str(compose_file), 'compose', 'up'])
    assert result.exit_code == 4
    assert 'CyclicDependency' in result.output


def test_compose_missing_file(runner, tmp_path):
    result = runner.invoke(cli, ['-f', str(tmp_path / 'none.yml'), 'compose', 'up'])
    assert result.exit_code == 3
    assert 'MalformedDescriptor' in result.output
