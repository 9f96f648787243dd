"""
Tests for CLI module.
"""

import pytest
import sys
import yaml
from unittest.mock import patch

from cli import get_execution_mode, main, parse_args
from errors import ConfigurationError
from models import ExecutionMode
from network import handle_to_dict
from orchestrator import ProvisioningOrchestrator


class TestParseArgs:
    """Test CLI argument parsing."""

    def test_parse_minimal_args(self):
        with patch.object(sys, 'argv', ['cli', '--phase', 'validate']):
            args = parse_args()
            assert args.phase == 'validate'
            assert args.mode == 'local'  # default
            assert args.environments_file == 'config/environments.yaml'  # default
            assert args.parallel == 3

    def test_parse_all_args(self):
        with patch.object(sys, 'argv', [
            'cli',
            '--mode', 'pipeline',
            '--subscription', 'sub-123',
            '--phase', 'apply',
            '--environments-file', 'custom/environments.yaml',
            '--handles', 'networks.yaml',
            '--output', 'results.json',
            '--parallel', '1',
            '--dry-run',
            '--verbose',
        ]):
            args = parse_args()
            assert args.mode == 'pipeline'
            assert args.subscription == 'sub-123'
            assert args.phase == 'apply'
            assert args.environments_file == 'custom/environments.yaml'
            assert args.handles == 'networks.yaml'
            assert args.output == 'results.json'
            assert args.parallel == 1
            assert args.dry_run is True
            assert args.verbose is True

    def test_phase_choices_valid(self):
        for phase in ['validate', 'plan', 'resolve', 'apply']:
            assert parse_args(['--phase', phase]).phase == phase

    def test_phase_required(self):
        with pytest.raises(SystemExit):
            parse_args([])

    def test_phase_invalid_choice(self):
        with pytest.raises(SystemExit):
            parse_args(['--phase', 'destroy'])


class TestGetExecutionMode:
    """Test execution mode conversion."""

    def test_modes(self):
        assert get_execution_mode('local') == ExecutionMode.LOCAL
        assert get_execution_mode('pipeline') == ExecutionMode.PIPELINE
        assert get_execution_mode('unknown') == ExecutionMode.LOCAL


class TestMain:
    """Test phases end to end against the shipped configuration."""

    def test_validate_phase(self, capsys, config_file):
        with pytest.raises(SystemExit) as exc:
            main(['--phase', 'validate', '--environments-file', config_file])

        assert exc.value.code == 0
        assert "Configuration valid: hub, gateway, clinical, non_clinical, velocity" in capsys.readouterr().out

    def test_missing_environments_file(self, tmp_path):
        with pytest.raises(SystemExit) as exc:
            main(['--phase', 'validate', '--environments-file', str(tmp_path / "missing.yaml")])
        assert exc.value.code == 1

    def test_invalid_configuration(self, tmp_path, capsys):
        path = tmp_path / "environments.yaml"
        with open(path, 'w') as f:
            yaml.dump({'environments': [{
                'name': 'velocity',
                'kind': 'spoke',
                'resource_group': 'rg-velocity',
                'location': 'eastus',
                'cidr': '10.40.0.0/16',
            }]}, f)

        with pytest.raises(SystemExit) as exc:
            main(['--phase', 'validate', '--environments-file', str(path)])

        assert exc.value.code == 1
        assert "Configuration error" in capsys.readouterr().out

    def test_plan_phase_exports(self, tmp_path, config_file):
        output = tmp_path / "plan.yaml"

        with pytest.raises(SystemExit) as exc:
            main(['--phase', 'plan', '--environments-file', config_file, '--output', str(output)])

        assert exc.value.code == 0
        with open(output) as f:
            assert len(yaml.safe_load(f)['plan']['steps']) == 26

    def test_dry_run_apply_prints_plan(self, capsys, config_file):
        with pytest.raises(SystemExit) as exc:
            main(['--phase', 'apply', '--dry-run', '--environments-file', config_file])

        assert exc.value.code == 0
        assert "PROVISIONING PLAN" in capsys.readouterr().out

    def test_resolve_requires_handles(self, config_file):
        with pytest.raises(SystemExit) as exc:
            main(['--phase', 'resolve', '--environments-file', config_file])
        assert exc.value.code == 1

    def test_resolve_phase(self, tmp_path, capsys, config_file, reference_handles):
        handles_file = tmp_path / "networks.yaml"
        with open(handles_file, 'w') as f:
            yaml.safe_dump({'networks': [handle_to_dict(h) for h in reference_handles.values()]}, f)

        with pytest.raises(SystemExit) as exc:
            main([
                '--phase', 'resolve',
                '--environments-file', config_file,
                '--handles', str(handles_file),
            ])

        assert exc.value.code == 0
        out = capsys.readouterr().out
        assert "RESOLVED TOPOLOGY" in out
        assert "Route tables: 4" in out

    def test_resolve_with_missing_network(self, tmp_path, capsys, config_file, reference_handles):
        del reference_handles["velocity"]
        handles_file = tmp_path / "networks.yaml"
        with open(handles_file, 'w') as f:
            yaml.safe_dump({'networks': [handle_to_dict(h) for h in reference_handles.values()]}, f)

        with pytest.raises(SystemExit) as exc:
            main([
                '--phase', 'resolve',
                '--environments-file', config_file,
                '--handles', str(handles_file),
            ])

        assert exc.value.code == 1
        assert "DependencyError" in capsys.readouterr().out

    def test_apply_requires_subscription(self, monkeypatch, config_file):
        monkeypatch.delenv("AZURE_SUBSCRIPTION_ID", raising=False)

        with pytest.raises(SystemExit) as exc:
            main(['--phase', 'apply', '--environments-file', config_file])
        assert exc.value.code == 1

    def test_apply_exit_code_reflects_failures(self, tmp_path, config_file, sample_run_summary):
        output = tmp_path / "results.json"

        with patch.object(ProvisioningOrchestrator, 'apply', return_value=sample_run_summary):
            with pytest.raises(SystemExit) as exc:
                main([
                    '--phase', 'apply',
                    '--environments-file', config_file,
                    '--subscription', 'sub-123',
                    '--output', str(output),
                ])

        assert exc.value.code == 1
        assert output.exists()

    def test_apply_clean_run_exits_zero(self, config_file, sample_run_summary):
        clean = dict(sample_run_summary, failed=0, skipped=0, results=[])

        with patch.object(ProvisioningOrchestrator, 'apply', return_value=clean):
            with pytest.raises(SystemExit) as exc:
                main([
                    '--phase', 'apply',
                    '--environments-file', config_file,
                    '--subscription', 'sub-123',
                ])

        assert exc.value.code == 0

    def test_aborted_apply_prints_and_saves_partial_results(self, tmp_path, capsys, config_file, sample_run_summary):
        output = tmp_path / "results.json"
        error = ConfigurationError("no VM factory", environment="velocity")
        error.summary = dict(sample_run_summary, aborted="no VM factory")

        with patch.object(ProvisioningOrchestrator, 'apply', side_effect=error):
            with pytest.raises(SystemExit) as exc:
                main([
                    '--phase', 'apply',
                    '--environments-file', config_file,
                    '--subscription', 'sub-123',
                    '--output', str(output),
                ])

        assert exc.value.code == 1
        out = capsys.readouterr().out
        assert "Aborted - ConfigurationError: no VM factory" in out
        assert "RUN SUMMARY" in out
        assert output.exists()
