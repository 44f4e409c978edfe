"""Command-line behaviour: halts exit 0, provider failures exit 1."""

from __future__ import annotations

import pytest

from mlprovision import cli
from mlprovision.azcli import AzCli


@pytest.fixture
def patched_cli(monkeypatch, fake_az, tmp_path):
    monkeypatch.setattr(cli, "AzCli", lambda executable=None: AzCli("az", runner=fake_az))
    monkeypatch.chdir(tmp_path)
    for var in ("MLPROVISION_WORKSPACE", "MLPROVISION_RESOURCE_GROUP", "MLPROVISION_COMPUTE", "MLPROVISION_EXPERIMENT"):
        monkeypatch.delenv(var, raising=False)
    (tmp_path / "train.py").write_text("print('hi')\n", "utf-8")
    return fake_az


RUN_ARGS = [
    "run",
    "--resource-group", "rg1",
    "--workspace", "ws1",
    "--compute", "cpu1",
    "--experiment", "exp1",
    "--script", "train.py",
    "--dataset-name", "mnist",
    "--environment-match", "Env",
]


class TestRun:
    def test_successful_run_with_existing_resources(self, patched_cli, tmp_path, capsys):
        patched_cli.seed_existing()
        assert cli.main(RUN_ARGS + ["--yes", "--submit"]) == 0

        assert (tmp_path / ".azureml" / "cpu1.runconfig").exists()
        out = capsys.readouterr().out
        assert "Run id" in out
        assert "exp1_1" in out

    def test_min_nodes_flag_reaches_cluster_creation(self, patched_cli, capsys):
        patched_cli.seed_existing()
        patched_cli.computes.clear()
        assert cli.main(RUN_ARGS + ["--yes", "--min-nodes", "1", "--max-nodes", "3"]) == 0
        create = next(c for c in patched_cli.calls if c[:3] == ["ml", "computetarget", "create"])
        assert create[create.index("--min-nodes") + 1] == "1"
        assert create[create.index("--max-nodes") + 1] == "3"
        assert "== compute target ==" in capsys.readouterr().out

    def test_default_experiment_is_used_for_submission(self, patched_cli):
        patched_cli.seed_existing()
        args = [a for a in RUN_ARGS if a not in ("--experiment", "exp1")]
        assert cli.main(args + ["--yes", "--submit"]) == 0
        submit = next(c for c in patched_cli.calls if c[:3] == ["ml", "run", "submit-script"])
        assert submit[submit.index("--experiment-name") + 1] == "mlprovision"

    def test_halt_exits_zero(self, patched_cli, tmp_path, capsys):
        assert cli.main(["run", "--workspace", "ws1", "--yes"]) == 0
        assert patched_cli.creations() == []

    def test_provider_failure_exits_one(self, patched_cli, capsys):
        patched_cli.fail[("group", "create")] = "ERROR: AuthorizationFailed"
        assert cli.main(RUN_ARGS + ["--yes"]) == 1
        err = capsys.readouterr().err
        assert err.startswith("ERROR:")
        assert "az group create --name rg1" in err

    def test_not_logged_in_exits_one(self, patched_cli, capsys):
        patched_cli.logged_in = False
        assert cli.main(RUN_ARGS) == 1
        assert "az login" in capsys.readouterr().err

    def test_dataset_flags_are_mutually_exclusive(self, patched_cli):
        with pytest.raises(SystemExit):
            cli.main(["run", "--dataset-name", "a", "--dataset-id", "b"])


class TestOtherCommands:
    def test_preflight(self, patched_cli, capsys):
        assert cli.main(["preflight"]) == 0
        assert "sub-123" in capsys.readouterr().out

    def test_settings_prints_json(self, patched_cli, tmp_path, capsys):
        cfg = tmp_path / "walk.yaml"
        cfg.write_text("workspace: ws-file\n", "utf-8")
        assert cli.main(["settings", "--config", str(cfg)]) == 0
        assert '"workspace": "ws-file"' in capsys.readouterr().out
