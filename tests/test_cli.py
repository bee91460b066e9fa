"""
Tests for the contextseal CLI
"""

import json
import shutil
import tempfile
from pathlib import Path

import pytest
from contextseal.cli import main
from contextseal.keys import LocalMasterKeyProvider


class TestCLI:
    """Test CLI commands against a temporary key and store directory"""

    def setup_method(self):
        self.temp_dir = Path(tempfile.mkdtemp())
        self.base_args = [
            "--alias", "alias/cli-test",
            "--keys-dir", str(self.temp_dir / "keys"),
            "--store-dir", str(self.temp_dir / "documents"),
        ]
        self.input_file = self.temp_dir / "input.txt"
        self.input_file.write_bytes(b"hello from the cli")

    def teardown_method(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def run(self, *args):
        return main(self.base_args + list(args))

    def put(self, capsys, *context_args):
        assert self.run("put", str(self.input_file), *context_args) == 0
        return capsys.readouterr().out.strip()

    def test_no_command_prints_help(self, capsys):
        assert main([]) == 0
        assert "usage" in capsys.readouterr().out

    def test_create_key(self, capsys):
        assert self.run("create-key") == 0
        out = capsys.readouterr().out
        assert "Created master key" in out
        assert "alias/cli-test" in out

    def test_create_key_twice_fails(self, capsys):
        self.run("create-key")
        assert self.run("create-key") == 1
        assert "already exists" in capsys.readouterr().err

    def test_put_get_round_trip(self, capsys):
        doc_id = self.put(capsys, "--context", "purpose=demo", "-c", "region=eu")
        output = self.temp_dir / "out.txt"

        assert self.run("get", doc_id, "--expect-key", "purpose", "--expect", "region=eu", "-o", str(output)) == 0
        assert output.read_bytes() == b"hello from the cli"
        assert '"region": "eu"' in capsys.readouterr().err

    def test_get_assertion_failure(self, capsys):
        doc_id = self.put(capsys, "--context", "region=eu")
        output = self.temp_dir / "out.txt"

        assert self.run("get", doc_id, "--expect", "region=us", "-o", str(output)) == 1
        err = capsys.readouterr().err
        assert "Context assertion failed" in err
        assert not output.exists()

    def test_get_unknown_document(self, capsys):
        self.run("create-key")
        capsys.readouterr()
        assert self.run("get", "0" * 32) == 1
        assert "NotFoundError" in capsys.readouterr().err

    def test_get_with_unknown_alias_does_not_create_key(self, capsys):
        doc_id = self.put(capsys, "--context", "purpose=demo")

        args = ["--alias", "alias/typo"] + self.base_args[2:]
        assert main(args + ["get", doc_id]) == 1
        assert "No master key" in capsys.readouterr().err

        assert not LocalMasterKeyProvider("alias/typo", str(self.temp_dir / "keys")).exists()

    def test_find_does_not_touch_keys(self, capsys):
        args = ["--alias", "alias/typo"] + self.base_args[2:]
        assert main(args + ["find", "purpose"]) == 0
        assert capsys.readouterr().out == ""

        assert not (self.temp_dir / "keys").exists()

    def test_context_file_yaml(self, capsys):
        context_file = self.temp_dir / "context.yaml"
        context_file.write_text("purpose: demo\nowner: alice\n")
        doc_id = self.put(capsys, "--context-file", str(context_file), "-c", "owner=bob")

        assert self.run("find", "owner", "--value", "bob") == 0
        assert capsys.readouterr().out.split() == [doc_id]

    def test_context_file_json(self, capsys):
        context_file = self.temp_dir / "context.json"
        context_file.write_text(json.dumps({"purpose": "demo"}))
        doc_id = self.put(capsys, "--context-file", str(context_file))

        assert self.run("find", "purpose") == 0
        assert capsys.readouterr().out.split() == [doc_id]

    def test_bad_context_pair(self, capsys):
        assert self.run("put", str(self.input_file), "--context", "novalue") == 1
        assert "key=value" in capsys.readouterr().err

    def test_missing_input_file(self, capsys):
        assert self.run("put", str(self.temp_dir / "missing.txt")) == 1
        assert "Error" in capsys.readouterr().err

    def test_info(self, capsys):
        assert self.run("info") == 0
        assert "not created" in capsys.readouterr().out

        self.run("create-key")
        capsys.readouterr()
        assert self.run("info") == 0
        assert "Key ID" in capsys.readouterr().out
