"""Tests for the operations CLI."""

import json
from unittest.mock import MagicMock, patch

from clixen.cli import main
from clixen.core.config import settings
from clixen.core.token_factory import decode_token
from conftest import make_workflow_json


class TestValidateWorkflow:

    def test_valid_file(self, tmp_path, capsys):
        path = tmp_path / "workflow.json"
        path.write_text(json.dumps(make_workflow_json()))
        assert main(["validate-workflow", str(path)]) == 0
        assert json.loads(capsys.readouterr().out)["score"] == 100

    def test_fix_writes_output(self, tmp_path):
        workflow = make_workflow_json()
        workflow["nodes"][1]["parameters"] = {}
        path = tmp_path / "workflow.json"
        out = tmp_path / "fixed.json"
        path.write_text(json.dumps(workflow))

        assert main(["validate-workflow", str(path), "--fix", "--output", str(out)]) == 0
        assert json.loads(out.read_text())["nodes"][1]["parameters"]["url"]
        assert json.loads(path.read_text())["nodes"][1]["parameters"] == {}

    def test_missing_file(self, tmp_path, capsys):
        assert main(["validate-workflow", str(tmp_path / "nope.json")]) == 1
        assert "[Error]" in capsys.readouterr().err


class TestFolderCommands:

    def test_seed_assign_release(self, capsys):
        assert main(["seed-folders", "--projects", "2", "--slots", "2"]) == 0
        assert "Created 4 folder(s)" in capsys.readouterr().out

        assert main(["assign", "cli-user"]) == 0
        assert "FOLDER-P" in capsys.readouterr().out

        assert main(["release", "cli-user"]) == 0
        assert main(["release", "cli-user"]) == 1

    def test_assign_without_pool_fails(self, capsys):
        assert main(["assign", "cli-user"]) == 1
        assert "capacity" in capsys.readouterr().err

    def test_folders_filtered_by_status(self, capsys):
        main(["seed-folders", "--projects", "1", "--slots", "2"])
        main(["assign", "cli-user"])
        capsys.readouterr()

        assert main(["folders", "--status", "active"]) == 0
        lines = capsys.readouterr().out.strip().splitlines()
        assert len(lines) == 1
        assert "FOLDER-P01-U1" in lines[0]
        assert "cli-user" in lines[0]

    def test_delete_user_releases_folder(self, capsys):
        main(["seed-folders", "--projects", "1", "--slots", "1"])
        main(["assign", "cli-user"])
        supabase = MagicMock()
        supabase.delete_user.return_value = True

        with patch("clixen.clients.get_supabase_client", return_value=supabase):
            assert main(["delete-user", "cli-user"]) == 0

        supabase.delete_user.assert_called_once_with("cli-user")
        out = capsys.readouterr().out
        assert "Released folder of cli-user" in out
        assert "Deleted Supabase user cli-user" in out
        assert main(["release", "cli-user"]) == 1


class TestMisc:

    def test_token(self, capsys):
        assert main(["token", "u-42", "--role", "admin", "--email", "ops@example.com"]) == 0
        payload = decode_token(capsys.readouterr().out.strip(), settings.jwt_secret_key)
        assert payload.sub == "u-42"
        assert payload.role == "admin"

    def test_sync_requires_n8n(self, capsys):
        assert main(["sync"]) == 1
        assert "n8n is not configured" in capsys.readouterr().err

    def test_health(self, capsys):
        assert main(["health"]) == 0
        assert json.loads(capsys.readouterr().out)["db"] == "ok"
